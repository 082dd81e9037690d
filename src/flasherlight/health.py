"""Problem counting and heartbeat supervision."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from .exceptions import FlasherLightError
from .models.enums import ProblemKind
from .protocol.commands import LightCommand
from .session.events import Cancellable

_LOGGER = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], Cancellable]


class ProblemCounters:
    """Counts problem signals per kind.

    Pass an instance wherever an ``on_problem`` listener is accepted.
    """

    def __init__(self) -> None:
        self._counts: dict[ProblemKind, int] = {kind: 0 for kind in ProblemKind}

    def __call__(self, kind: ProblemKind) -> None:
        self._counts[kind] += 1
        _LOGGER.warning("Problem %s seen %d time(s)", kind.value, self._counts[kind])

    def count(self, kind: ProblemKind) -> int:
        return self._counts[kind]

    def snapshot(self) -> dict[ProblemKind, int]:
        """Copy of the current counts."""
        return dict(self._counts)

    def reset(self) -> None:
        for kind in self._counts:
            self._counts[kind] = 0


class HeartbeatWatchdog:
    """Falls back to the standby appearance when the light state goes stale.

    Whatever supplies light states calls beat() each time it hears from
    its source. A periodic check submits STANDBY once after stale_after
    seconds of silence, and re-arms on the next beat.

    Args:
        submit: Command sink, usually FlasherLightDevice.submit_command
        stale_after: Seconds without a beat before falling back (default: 30)
        check_interval: Seconds between checks (default: 1)
        clock: Monotonic time source
        scheduler: call_later style scheduler; defaults to the running loop
    """

    def __init__(
            self,
            submit: Callable[[LightCommand], object],
            stale_after: float = 30.0,
            check_interval: float = 1.0,
            clock: Callable[[], float] = time.monotonic,
            scheduler: Scheduler | None = None,
    ):
        if stale_after <= 0 or check_interval <= 0:
            raise ValueError("stale_after and check_interval must be positive")
        self._submit = submit
        self.stale_after = stale_after
        self.check_interval = check_interval
        self._clock = clock
        self._scheduler = scheduler
        self._handle: Cancellable | None = None
        self._last_beat = 0.0
        self._fallback_sent = False

    @property
    def running(self) -> bool:
        return self._handle is not None

    @property
    def is_stale(self) -> bool:
        return self._clock() - self._last_beat >= self.stale_after

    @property
    def fallback_sent(self) -> bool:
        return self._fallback_sent

    def start(self) -> None:
        """Start checking; counts as a first beat."""
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop().call_later
        self._last_beat = self._clock()
        self._fallback_sent = False
        if self._handle is None:
            self._schedule()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def beat(self) -> None:
        self._last_beat = self._clock()
        if self._fallback_sent:
            _LOGGER.info("Heartbeat resumed")
            self._fallback_sent = False

    def _schedule(self) -> None:
        self._handle = self._scheduler(self.check_interval, self._check)

    def _check(self) -> None:
        if self._handle is None:
            return
        if self.is_stale and not self._fallback_sent:
            self._fallback_sent = True
            _LOGGER.warning(
                "No heartbeat for %.1fs, falling back to standby",
                self._clock() - self._last_beat,
            )
            try:
                self._submit(LightCommand.STANDBY)
            except FlasherLightError as e:
                _LOGGER.warning("Could not submit standby: %s", e)
        self._schedule()
