"""Shared enums for the short link service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus", "ClickOutcome"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ERROR = "error"


class CacheStatus(StrEnum):
    """Where a resolved record came from."""

    HIT = "true"
    MISS = "false"


class ClickOutcome(StrEnum):
    """Click recorder outcomes, used as a metric label."""

    QUEUED = "queued"
    DROPPED = "dropped"
    RECORDED = "recorded"
    FAILED = "failed"
