"""Error taxonomy for platform operations.

Every error here is local and recoverable: the operation that raised it
left no partial state behind, so callers can surface the message and retry.
"""


class PlatformError(Exception):
    """Base class for all rejected platform operations."""


class ValidationError(PlatformError):
    """Required fields are missing or a value is outside its allowed set."""


class ParseError(PlatformError):
    """An imported payload is malformed."""


class ConfigError(PlatformError):
    """Training configuration or platform settings are incomplete or invalid."""


class AlreadyRunningError(PlatformError):
    """A training job is already running on this controller."""


class NotFoundError(PlatformError):
    """A named pipeline, pipeline step, or dataset item does not exist."""
