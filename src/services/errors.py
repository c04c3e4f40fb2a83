# src/services/errors.py

"""Exception hierarchy for sync runs."""


class AggregatorError(Exception):
    """Base exception for all aggregator errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnauthorizedError(AggregatorError):
    """Raised when a sync trigger carries no valid credential."""


class SyncConfigurationError(AggregatorError):
    """Raised when a run cannot start (empty catalog or source list)."""


class AdapterError(AggregatorError):
    """Raised by a source adapter when a search cannot be completed."""
