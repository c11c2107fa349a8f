"""
Exception and warning classes raised by alexinflow.

Overview:
A small hierarchy so that callers (e.g., the outer FLARE forecast loop) can
tell a bad configuration apart from missing upstream data.

Technical Notes:
- `UsageError` subclasses ValueError, so existing `except ValueError` handlers keep working.
- `DataUnavailableError` is fatal to the current forecast cycle; the outer
  orchestration decides whether to retry the whole cycle.
- `NumericDegeneracyWarning` is issued with `warnings.warn` and never raised.

Change Log:
2025-05-07, Initial version of the exception classes.
"""

__all__ = [
    "UsageError",
    "DataUnavailableError",
    "NumericDegeneracyWarning",
]


class UsageError(ValueError):
    """Invalid configuration or argument value (unit, location, forecast dates, columns)."""


class DataUnavailableError(RuntimeError):
    """Upstream data source failed or returned no rows for the requested window."""

    def __init__(self, source, message="", **details):
        self.source = source
        self.details = details
        super().__init__(f"Data unavailable from '{source}': {message}")


class NumericDegeneracyWarning(UserWarning):
    """Non-fatal numeric issue, e.g., zero training variance or a month without flow bounds."""
