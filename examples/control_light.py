"""Connect to a flasher light controller and send one command.

Usage:
    uv run python examples/control_light.py AA:BB:CC:DD:EE:FF RED_BRI
    uv run python examples/control_light.py AA:BB:CC:DD:EE:FF 4 --hold 10
    uv run python examples/control_light.py --config light.json STANDBY --watchdog 60
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from flasherlight import (
    FlasherLightConfig,
    FlasherLightDevice,
    FlasherLightError,
    HeartbeatWatchdog,
    LightCommand,
    ProblemCounters,
    SessionFailure,
    load_config,
)


def _parse_code(value: str) -> LightCommand | int | str:
    """Accept a LightCommand name, an integer code, or a one-character platform code."""
    if value.upper() in LightCommand.__members__:
        return LightCommand[value.upper()]
    if len(value) == 1:
        return value
    return int(value, 0)


def _print_failure(failure: SessionFailure) -> None:
    print(f"Session failed in {failure.state.value}: {failure.message}")


async def run(config: FlasherLightConfig, code: LightCommand | int | str, hold: float, watchdog: float) -> None:
    """Connect, send the command and keep the session open."""
    counters = ProblemCounters()
    light = FlasherLightDevice(
        config.mac_address,
        config=config,
        on_session_failed=_print_failure,
        on_problem=counters,
    )

    print(f"Connecting to {config.mac_address}...")
    async with light:
        print(f"Session {light.session_state.value}")
        for frame in light.submit_command(code):
            print(f"  queued {frame.hex()}")

        if watchdog > 0:
            # nothing beats, so standby follows after stale_after seconds
            dog = HeartbeatWatchdog(
                light.submit_command,
                stale_after=config.heartbeat_stale_after,
                check_interval=config.heartbeat_check_interval,
            )
            dog.start()
            try:
                await asyncio.sleep(watchdog)
            finally:
                dog.stop()
        else:
            await asyncio.sleep(hold)

    problems = {kind.value: n for kind, n in counters.snapshot().items()}
    print("\nSummary:")
    print(f"  final_state={light.session_state.value}")
    print(f"  problems={problems}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Send one light command to a flasher light controller."
    )
    parser.add_argument("address", nargs="?", help="Controller MAC address")
    parser.add_argument("command", help="LightCommand name, integer code or platform character")
    parser.add_argument("--config", help="JSON config file (overrides address)")
    parser.add_argument(
        "--hold",
        type=float,
        default=5.0,
        help="Seconds to keep the session open after sending. Default: 5",
    )
    parser.add_argument(
        "--watchdog",
        type=float,
        default=0.0,
        help="Run the heartbeat watchdog for this many seconds instead of holding.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()
    if args.config is None and args.address is None:
        parser.error("address or --config is required")
    return args


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    config = load_config(args.config) if args.config else FlasherLightConfig(args.address)
    try:
        asyncio.run(run(config, _parse_code(args.command), args.hold, args.watchdog))
    except FlasherLightError as err:
        print(f"Error: {err}")
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
