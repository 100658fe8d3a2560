"""Shared enums for the download card service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "Datastore", "InitState", "RedemptionOutcome"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class Datastore(StrEnum):
    """Backends an item's object can be stored in."""

    STATIC = "STATIC"


class InitState(StrEnum):
    """Lifecycle of the one-time card cache load."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"


class RedemptionOutcome(StrEnum):
    """Result of a single redemption attempt, also used as a metrics label."""

    SUCCESS = "success"
    INVALID_KEY = "invalid_key"
    LIMIT_EXCEEDED = "limit_exceeded"
    PERSISTENCE_FAILURE = "persistence_failure"
    INTEGRITY_ERROR = "integrity_error"
    ISSUANCE_FAILURE = "issuance_failure"
    NOT_READY = "not_ready"

    @property
    def is_failure(self) -> bool:
        """True for outcomes that indicate a server-side problem."""
        return self not in (
            RedemptionOutcome.SUCCESS,
            RedemptionOutcome.INVALID_KEY,
            RedemptionOutcome.LIMIT_EXCEEDED,
        )
