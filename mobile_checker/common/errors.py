"""Domain errors and failure typing."""


class CoverageCheckError(Exception):
    """Base class for coverage checker failures."""

    error_code = "CHECK_ERROR"


class ConfigError(CoverageCheckError):
    """Raised for invalid or missing configuration, including unknown editions."""

    error_code = "CONFIG_ERROR"


class TransportError(CoverageCheckError):
    """Raised when a remote service cannot be reached or answers badly."""

    error_code = "TRANSPORT_ERROR"


class ValidationError(CoverageCheckError):
    """Raised when a postcode is rejected as invalid or unknown."""

    error_code = "VALIDATION_ERROR"


class UnavailableError(CoverageCheckError):
    """Raised when the local coverage store is missing or unreadable."""

    error_code = "DATASET_UNAVAILABLE"


class NotFoundError(CoverageCheckError):
    """Raised when a valid postcode has no row in the coverage dataset."""

    error_code = "NOT_FOUND"


class ParseError(CoverageCheckError):
    """Raised for a malformed dataset row. Always caught and counted."""

    error_code = "PARSE_ERROR"


class StageError(CoverageCheckError):
    """Raised for setup stage failures that leave no usable dataset."""

    error_code = "STAGE_ERROR"


class AcquisitionError(StageError):
    error_code = "ACQUISITION_ERROR"


class IngestError(StageError):
    error_code = "INGEST_ERROR"
