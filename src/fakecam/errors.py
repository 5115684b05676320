from __future__ import annotations

__all__ = ["FilterError", "ValidationError", "BackendError", "LogicError"]


class FilterError(Exception):
    """
    Base class for every failure a filter reports for a single frame.
    """

    prefix: str = "Filter failed"

    def __str__(self) -> str:
        message = super().__str__()
        return f"{self.prefix}: {message}" if message else self.prefix


class ValidationError(FilterError, ValueError):
    """Frame and background disagree on shape, channel count or dtype."""

    prefix = "Filter failed; invalid input"


class BackendError(FilterError):
    """The numeric library or the inference engine raised."""

    prefix = "Filter failed; backend error"


class LogicError(FilterError):
    """The loaded model broke the input/output contract of the filter."""

    prefix = "Filter failed; backend contract violation"
