"""Service error taxonomy. Each error knows the HTTP status it maps to."""

from typing import Iterable, Optional


class ServiceError(Exception):
    status_code = 500
    detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class ValidationError(ServiceError):
    status_code = 400
    detail = "invalid request"


class ProductNotFound(ServiceError):
    status_code = 404

    def __init__(self, product_ids: Iterable[int]):
        self.product_ids = sorted(set(product_ids))
        super().__init__(f"unknown product(s): {self.product_ids}")


class InsufficientStock(ServiceError):
    status_code = 409

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"insufficient stock for product {product_id}")


class StoreUnavailable(ServiceError):
    status_code = 500


class CacheUnavailable(Exception):
    """Raised by the cache layer; callers degrade instead of failing the request."""
