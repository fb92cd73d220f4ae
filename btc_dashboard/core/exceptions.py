"""
Custom exceptions for the dashboard core
"""


class DashboardError(Exception):
    """Base exception for dashboard errors"""


class ConfigurationError(DashboardError):
    """Configuration related errors"""


class MarketDataError(DashboardError):
    """Market data retrieval errors"""


class TransportFailure(MarketDataError):
    """REST non-success status or network error"""


class ParseFailure(MarketDataError):
    """Malformed or unexpected response payload"""


class FetchFailed(MarketDataError):
    """Historical fetch aborted; accumulated pages were discarded"""
