"""Custom exception hierarchy for the telemetry and handover core."""


class CellSimError(Exception):
    """Base class for package specific exceptions."""


class ConfigurationError(CellSimError):
    """Raised when simulation parameters are inconsistent."""


class AttributionError(CellSimError):
    """Raised when an attribution strategy is misconfigured."""


class PositionUnavailableError(CellSimError, KeyError):
    """Raised when a position source has no position for an entity or cell."""


class TimeSeriesFinalizedError(CellSimError):
    """Raised when appending to a time series that was already finalized."""


class ExportError(CellSimError):
    """Raised when a metrics sink fails to persist the time series."""
