"""Classification of transport status codes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .constants import MAX_RETRIES_SERVICE_DISCOVERY, GattStatus

_LOGGER = logging.getLogger(__name__)


class Outcome(Enum):
    """What the session does next after a transport result."""

    SUCCESS = "success"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"


class FailureReason(Enum):
    """Why a result was not a success."""

    PEER_TERMINATED = "peer_terminated"
    LINK_TIMEOUT = "link_timeout"
    GENERIC_FAILURE = "generic_failure"
    UNRECOGNIZED = "unrecognized"
    WRITE_FAILED = "write_failed"
    SERVICE_NOT_FOUND = "service_not_found"


# Codes meaning the link itself is gone
LINK_LOSS_REASONS = frozenset({
    FailureReason.PEER_TERMINATED,
    FailureReason.LINK_TIMEOUT,
    FailureReason.GENERIC_FAILURE,
})

_KNOWN_FAILURES = {
    GattStatus.CONN_TERMINATE_PEER_USER: FailureReason.PEER_TERMINATED,
    GattStatus.CONN_TIMEOUT: FailureReason.LINK_TIMEOUT,
    GattStatus.GATT_ERROR: FailureReason.GENERIC_FAILURE,
    GattStatus.GATT_FAILURE: FailureReason.WRITE_FAILED,
}


@dataclass(frozen=True)
class Classification:
    """Result of classifying one transport outcome."""

    outcome: Outcome
    status: int = GattStatus.SUCCESS
    reason: FailureReason | None = None

    @property
    def is_success(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def is_fatal(self) -> bool:
        return self.outcome is Outcome.FATAL

    @property
    def is_link_loss(self) -> bool:
        """True when the failure means the connection is gone."""
        return self.reason in LINK_LOSS_REASONS

    def describe(self) -> str:
        if self.reason is None:
            return "success"
        return f"{self.reason.value} (status {self.status})"


SUCCESS = Classification(Outcome.SUCCESS)


def classify(status: int) -> Classification:
    """Map a raw transport status code to an outcome.

    Every non-zero code is fatal at this layer: the transport gives no
    reliable signal separating "retry now" from "link is dead", so the
    session closes and the caller starts a fresh attempt.

    Args:
        status: Status code reported by the transport

    Returns:
        Classification with outcome, status and failure reason
    """
    if status == GattStatus.SUCCESS:
        return SUCCESS

    reason = _KNOWN_FAILURES.get(status)
    if reason is None:
        _LOGGER.error("Unrecognized transport status %d, treating as fatal", status)
        reason = FailureReason.UNRECOGNIZED

    return Classification(Outcome.FATAL, status=status, reason=reason)


def classify_discovery(
        status: int,
        service_present: bool,
        retries_used: int,
        max_retries: int = MAX_RETRIES_SERVICE_DISCOVERY,
) -> Classification:
    """Classify a service discovery result.

    Discovery is the only step with a bounded retry: a missing service is
    recoverable until max_retries re-enumerations have been spent.

    Args:
        status: Status code reported with the discovery result
        service_present: Whether the controller service was enumerated
        retries_used: Re-enumerations already requested in this session
        max_retries: Retry budget

    Returns:
        Classification for the discovery result
    """
    result = classify(status)
    if not result.is_success:
        return result
    if service_present:
        return SUCCESS
    if retries_used < max_retries:
        return Classification(
            Outcome.RECOVERABLE,
            status=status,
            reason=FailureReason.SERVICE_NOT_FOUND,
        )
    return Classification(
        Outcome.FATAL,
        status=status,
        reason=FailureReason.SERVICE_NOT_FOUND,
    )
