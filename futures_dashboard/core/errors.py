from typing import Optional


class DashboardError(Exception):
    """Base class for errors raised by the dashboard core."""


class InvalidTradeData(DashboardError, ValueError):
    """Raised when a trade record is malformed or contradictory.

    Not retried. Aborts the whole reconstruction batch.
    """


class EmptyUpstreamData(DashboardError, IndexError):
    """Raised when a persisted series that must have at least one entry is empty."""


class ExchangeAPIError(DashboardError):
    """Raised when the exchange REST API returns an error or an unusable body."""

    def __init__(self, message: str, code: Optional[int] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code
