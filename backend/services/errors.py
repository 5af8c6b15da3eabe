"""
BizFlow Pro - Service errors

Validation errors are raised before any mutation (safe to retry after
fixing the input). OrderTransactionError means the atomic phase was
rolled back. Routes translate these into HTTP status codes.
"""


class NotFoundError(Exception):
    """A record does not exist inside the caller's tenant"""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class ConflictError(Exception):
    """Uniqueness rule violated (duplicate email, duplicate tag...)"""
    pass


# ==================== ORDERS ====================

class OrderValidationError(Exception):
    """Checkout input rejected before the transaction opens"""
    pass


class EmptyOrderError(OrderValidationError):
    def __init__(self):
        super().__init__("Order must contain at least one item")


class ProductNotFoundError(OrderValidationError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class InsufficientStockError(OrderValidationError):
    def __init__(self, product_id: str, product_name: str, requested: int, available: int = None):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {product_name}")


class OrderTransactionError(Exception):
    """The order transaction failed and every write was rolled back"""
    pass


class InvalidOrderStatusError(Exception):
    pass
