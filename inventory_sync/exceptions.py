"""Inventory error taxonomy.

Raised by the service layer and by the client library. Every error carries
the HTTP status it maps to and a machine-readable ``error_type``, so the API
layer can render it uniformly and the client can map a response back to the
same class.
"""


class InventoryError(Exception):
    """Base class for all inventory errors."""

    status_code = 500
    error_type = "inventory_error"


class ValidationError(InventoryError):
    """Missing or invalid input."""

    status_code = 400
    error_type = "validation_error"


class ConflictError(InventoryError):
    """A product with the same name (case-insensitive) already exists."""

    status_code = 409
    error_type = "conflict"


class NotFoundError(InventoryError):
    """The requested product does not exist."""

    status_code = 404
    error_type = "not_found"


class InsufficientStockError(InventoryError):
    """A quantity adjustment would drive stock below zero."""

    status_code = 400
    error_type = "insufficient_stock"


class MediaStoreError(InventoryError):
    """The hosted media store failed."""

    status_code = 502
    error_type = "media_store_error"


class UploadError(MediaStoreError):
    """Image upload failed or returned no locator."""

    error_type = "upload_error"


class TransportError(InventoryError):
    """The push channel connection dropped. Recoverable by reconnecting."""

    status_code = 503
    error_type = "transport_error"


ERROR_TYPES = {
    cls.error_type: cls
    for cls in (
        InventoryError,
        ValidationError,
        ConflictError,
        NotFoundError,
        InsufficientStockError,
        MediaStoreError,
        UploadError,
        TransportError,
    )
}
