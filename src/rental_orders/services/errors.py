"""Custom service layer errors."""


class ServiceError(Exception):
    """Base error for service-layer failures."""


class ValidationError(ServiceError):
    """Raised when input is malformed or breaks a business rule."""


class EmptyBatchError(ValidationError):
    """Raised when a batch request contains no lines."""


class InvalidQuantityError(ValidationError):
    """Raised when a quantity or duration field is out of range."""


class NotFoundError(ServiceError):
    """Raised when an entity is not found."""


class ItemNotFoundError(NotFoundError):
    """Raised when an order item does not belong to the order."""


class ConflictError(ServiceError):
    """Raised when a unique natural key is already taken."""


class InsufficientStockError(ServiceError):
    """Raised when a reservation exceeds the available count."""


class OverReturnError(ServiceError):
    """Raised when a return exceeds the units still out on rent."""


class StoreError(ServiceError):
    """Raised when the database fails for a transient reason."""
