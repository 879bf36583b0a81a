"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class FileIOError(PipelineError):
    """Raised when a table or output file cannot be opened, read, or written."""

    error_code = "IO_ERROR"


class ParseError(PipelineError):
    """Raised for malformed delimited or structured text."""

    error_code = "PARSE_ERROR"


class CoordinateError(ParseError):
    """Raised when a row's lat/lon cannot be used as a point."""

    error_code = "COORDINATE_ERROR"


class NetworkError(PipelineError):
    """Raised when a geocoding call could not complete."""

    error_code = "NETWORK_ERROR"


class InvalidResponseError(ParseError):
    """Raised when the geocoding response is not in the expected shape."""

    error_code = "INVALID_RESPONSE"


class NoMatchError(PipelineError):
    """Raised when an eligible row has no usable geocoding candidate."""

    error_code = "NO_MATCH"


# Conditions the "continue" failure policy downgrades to row-level failures.
ROW_RECOVERABLE_ERRORS = (NoMatchError, NetworkError)
