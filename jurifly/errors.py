# =============================================================================
# Error Types
# =============================================================================
#
# Every failure the API reports collapses to `{"data": null, "error": str}`.
# Each exception carries the HTTP status it maps to; a single handler in
# main.py renders them.
#
# Taxonomy:
#   validation     : malformed input (FlowValidationError, Pydantic 422)
#   external       : model, store or news feed unreachable (StoreError,
#                    FlowOutputError, NewsFeedError)
#   business rule  : checked locally, no remote write attempted
#                    (InsufficientCreditsError, FeatureLockedError, ...)
# =============================================================================

from __future__ import annotations


class JuriflyError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(JuriflyError):
    status_code = 404


class ProfileNotFoundError(NotFoundError):
    pass


class StoreError(JuriflyError):
    """The document store could not complete a read or write."""

    status_code = 503


class InsufficientCreditsError(JuriflyError):
    status_code = 402

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient credits: {required} required, {available} available. "
            "Upgrade your plan or buy a credit pack."
        )
        self.required = required
        self.available = available


class PlanExpiredError(JuriflyError):
    status_code = 402


class FeatureLockedError(JuriflyError):
    status_code = 403


class FlowNotFoundError(NotFoundError):
    pass


class FlowValidationError(JuriflyError):
    status_code = 422


class FlowOutputError(JuriflyError):
    """The model reply was missing, unparseable, or failed schema validation."""

    status_code = 502


class ConfigurationError(JuriflyError):
    """A required collaborator (model API key, provider) is not configured."""

    status_code = 503


class NewsFeedError(JuriflyError):
    """NewsAPI rejected the request or could not be reached."""

    status_code = 502


class AccessPassError(JuriflyError):
    """An access pass could not be redeemed (unknown, expired, used up)."""
