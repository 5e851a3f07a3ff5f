class NotFoundError(Exception):
    """Raised when a row does not exist or is not owned by the caller."""


class VehicleLimitError(Exception):
    """Raised when the user's plan does not allow another vehicle."""


class StorageError(Exception):
    """Raised by the object storage backends."""


class BackendTimeout(TimeoutError):
    """Raised when a blocking backend call exceeds its fixed deadline."""
