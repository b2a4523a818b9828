"""Exceptions raised by the monitoring engine."""


class SentinelError(Exception):
    """Base class for all price sentinel errors."""


class ExtractionError(SentinelError):
    """Extraction service unreachable, timed out, or returned unusable data."""


class InvalidPriceError(ExtractionError):
    """Extraction succeeded but the price was not positive."""

    def __init__(self, price: float, message: str | None = None):
        self.price = price
        super().__init__(message or f"Extraction returned non-positive price: {price}")


class StorageCorruptionError(SentinelError):
    """Persisted snapshot could not be parsed."""


class NotificationError(SentinelError):
    """Alert could not be delivered on a channel."""


class ProductNotFoundError(SentinelError, KeyError):
    """No tracked product with the given id."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"No tracked product with id {product_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class StorageError(SentinelError):
    """Snapshot could not be read or written."""
