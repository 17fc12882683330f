class BatchlineError(Exception):
    """Base class for every error raised by batchline."""


class ConfigurationError(BatchlineError, ValueError):
    """Bad or missing settings, detected before a run performs any I/O."""


class ConnectivityError(BatchlineError):
    """The database could not be reached, or the expected table is missing."""


class DriverNotFoundError(ConnectivityError):
    """No driver is registered under the requested plugin identifier."""


class ValidationError(BatchlineError, ValueError):
    """A run-time value (bounding-query result, offset duration, date pattern) is malformed."""


class PartitionConflictError(BatchlineError):
    """The computed partition was already claimed by another run."""


class SchemaMismatchError(BatchlineError, ValueError):
    """A field-case policy is not recognised."""
