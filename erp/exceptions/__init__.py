"""Custom exceptions for the ERP order backend."""


class SaasError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['success'] = False
        return rv


class ValidationError(SaasError):
    """Malformed or out-of-range input. Carries field-level messages."""
    def __init__(self, message="Validation failed", errors=None):
        self.errors = list(errors or [])
        super().__init__(message, 400, {'errors': self.errors})


class BusinessLogicError(SaasError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(SaasError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InsufficientStockError(BusinessLogicError):
    """Raised when a reservation asks for more than the available stock."""
    def __init__(self, product_id, product_name, requested, available):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        message = (
            f"Insufficient stock for product {product_name}. "
            f"Available: {available}, Requested: {requested}"
        )
        super().__init__(message, payload={
            'product_id': product_id,
            'product_name': product_name,
            'requested': requested,
            'available': available,
        })


class NegativeStockError(BusinessLogicError):
    """Raised when a manual adjustment would leave stock below zero."""
    def __init__(self, product_name, current, delta):
        message = (
            f"Stock adjustment of {delta} for product {product_name} "
            f"would leave negative stock (current: {current})"
        )
        super().__init__(message, payload={'current': current, 'delta': delta})


class InvalidStateError(BusinessLogicError):
    """Operation not allowed by the current order state."""


class ConflictError(SaasError):
    """Duplicate SKU or a unique-constraint race."""
    def __init__(self, message="Resource already exists", payload=None):
        super().__init__(message, 409, payload)


class Fault(SaasError):
    """Unexpected persistence or infrastructure failure."""
    def __init__(self, message="Internal Server Error"):
        super().__init__(message, 500)


class UnauthorizedError(SaasError):
    """Raised when the request carries no usable actor context."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)
