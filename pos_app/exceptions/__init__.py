"""Custom exceptions for the POS application."""


def _fmt_qty(value):
    return f"{int(value)}" if value % 1 == 0 else f"{value:.2f}".rstrip('0').rstrip('.')


class PosError(Exception):
    """Base exception for all application errors."""
    error_code = 'error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['error'] = self.error_code
        return rv


class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    error_code = 'business_rule'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    error_code = 'not_found'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InvalidQuantityError(BusinessLogicError):
    """Quantity input is not a whole number greater than 0."""
    error_code = 'invalid_quantity'

    def __init__(self, value=None):
        super().__init__(
            'Quantity must be a whole number greater than 0.',
            payload={'value': str(value)}
        )


class ProductNotFoundError(NotFoundError):
    """Product code or id lookup missed."""
    error_code = 'product_not_found'

    def __init__(self, reference=None):
        message = 'Product not found. Double-check the code.'
        if reference:
            message = f'Product not found: {reference}'
        super().__init__(message, payload={'reference': reference})


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    error_code = 'insufficient_stock'

    def __init__(self, product_name, required, available):
        self.product_name = product_name
        self.required = required
        self.available = available
        message = (
            f"Insufficient stock for {product_name}: "
            f"requested {_fmt_qty(required)}, available: {_fmt_qty(available)}"
        )
        super().__init__(
            message,
            status_code=409,
            payload={'product_name': product_name, 'required': required, 'available': available}
        )


class EmptyCartError(BusinessLogicError):
    """Checkout attempted with no lines."""
    error_code = 'empty_cart'

    def __init__(self):
        super().__init__('Add at least one item before completing the sale.')


class DuplicateProductCodeError(BusinessLogicError):
    """Catalog maintenance tried to introduce a colliding product code."""
    error_code = 'duplicate_product_code'

    def __init__(self, product_code):
        super().__init__(
            f'Product code {product_code} already exists. Please choose another.',
            status_code=409,
            payload={'product_code': product_code}
        )


class PersistenceError(PosError):
    """Storage or network failure while persisting a change."""
    error_code = 'persistence_failure'

    def __init__(self, message="Could not persist the change", status_code=503, payload=None):
        super().__init__(message, status_code, payload)


class UnauthorizedError(PosError):
    """Raised when a user lacks permission for an action."""
    error_code = 'unauthorized'

    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)
