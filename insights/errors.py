"""
Error types raised by the insight engine.

Not-enough-data is not an error: it is returned as scoring.models.InsufficientData.
"""


class InsightError(Exception):
    """Base class for insight engine errors."""


class UnknownInsightTypeError(InsightError, ValueError):
    """A caller asked for an insight type the composer does not implement."""

    def __init__(self, insight_type: str, known=()):
        self.insight_type = insight_type
        self.known = tuple(known)
        message = f"Unknown insight type: {insight_type!r}"
        if self.known:
            message += f" (expected one of: {', '.join(self.known)})"
        super().__init__(message)


class ConfigError(InsightError, ValueError):
    """The configuration file or a preset could not be loaded or is inconsistent."""
