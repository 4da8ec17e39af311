"""Custom exception types for consistent error handling."""


class StoreError(Exception):
    """Base class for failures reported by a storage collaborator."""

    kind = "store_error"


class NotFoundError(StoreError):
    """Raised when a requested document does not exist."""

    kind = "not_found"


class UnauthorizedError(StoreError):
    """Raised when the store rejects our credentials or permissions."""

    kind = "unauthorized"


class FirestoreUnavailableError(StoreError):
    """Raised when Firestore queries fail or are unavailable."""

    kind = "unavailable"


class MalformedResponseError(StoreError):
    """Raised when a stored document cannot be parsed into a model."""

    kind = "malformed"


class CacheError(Exception):
    """Raised when the shared cache tier fails."""

