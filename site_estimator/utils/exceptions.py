"""
Custom exception hierarchy for Site Estimator.

All custom exceptions inherit from SiteEstimatorError for easy catching.
"""


class SiteEstimatorError(Exception):
    """Base exception for all Site Estimator errors."""
    pass


class ConfigurationError(SiteEstimatorError):
    """Configuration-related errors.

    Raised when configuration loading or validation fails.

    Example:
        >>> raise ConfigurationError("Database output enabled but no database name given")
    """
    pass


class DataLoadError(SiteEstimatorError):
    """Data loading errors.

    Raised when the cell export cannot be opened or read. Fatal to a run.

    Example:
        >>> raise DataLoadError("Cell export not found: MLS-full-cell-export.csv")
    """
    pass


class ParseError(SiteEstimatorError):
    """A single raw record could not be turned into an Observation.

    Scoped to one record: the batch parser skips the record and keeps going.

    Attributes:
        field: Name of the offending field ('mcc', 'lon', ... or 'record'
            for structural problems)
        value: Raw text that failed to decode
        record_index: Position of the record in the input, when known
    """

    def __init__(self, message: str, field: str = None, value: str = None, record_index: int = None):
        super().__init__(message)
        self.field = field
        self.value = value
        self.record_index = record_index

    def __str__(self):
        base = super().__str__()
        if self.field:
            base = f"{base} (field={self.field})"
        if self.record_index is not None:
            base = f"{base} (record={self.record_index})"
        return base


class AggregationError(SiteEstimatorError):
    """A site group could not be estimated.

    Scoped to one group; never aborts aggregation of other groups.

    Attributes:
        key: SiteKey of the degenerate group
    """

    def __init__(self, message: str, key=None):
        super().__init__(message)
        self.key = key

    def __str__(self):
        base = super().__str__()
        if self.key is not None:
            return f"{base} (key={tuple(self.key)})"
        return base


class OutputError(SiteEstimatorError):
    """Output errors.

    Raised when results cannot be written to a file or the database.

    Example:
        >>> raise OutputError("Failed to write estimated_sites.csv: permission denied")
    """
    pass
