"""Custom exceptions for the bar POS application."""
from decimal import Decimal


def _fmt_qty(value):
    value = Decimal(str(value))
    return f"{int(value)}" if value % 1 == 0 else f"{value:.2f}".rstrip('0').rstrip('.')


class BarPosError(Exception):
    """Base exception for all application errors."""
    kind = 'Error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['kind'] = self.kind
        rv['status'] = 'error'
        return rv


class BusinessLogicError(BarPosError):
    """Exception raised for business logic violations."""
    kind = 'BusinessLogic'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(BarPosError):
    """Exception raised when a resource is not found."""
    kind = 'NotFound'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class EventNotFoundError(NotFoundError):
    kind = 'EventNotFound'

    def __init__(self, event_id):
        super().__init__(f"Event {event_id} not found", {'event_id': event_id})


class BeverageNotFoundError(NotFoundError):
    kind = 'BeverageNotFound'

    def __init__(self, beverage_id, name=None):
        label = f'"{name}" ({beverage_id})' if name else str(beverage_id)
        super().__init__(f"Beverage {label} not found", {'beverage_id': beverage_id})


class TableNotFoundError(NotFoundError):
    kind = 'TableNotFound'

    def __init__(self, table_id):
        super().__init__(f"Table {table_id} not found", {'table_id': table_id})


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    kind = 'InsufficientStock'

    def __init__(self, beverage_id, beverage_name, requested, available):
        message = (
            f"Insufficient stock for {beverage_name}: "
            f"available {_fmt_qty(available)}, requested {_fmt_qty(requested)}"
        )
        super().__init__(message, status_code=409, payload={
            'beverage_id': beverage_id,
            'requested': int(requested),
            'available': int(available),
        })
        self.beverage_id = beverage_id
        self.requested = requested
        self.available = available


class InvalidQuantityError(BusinessLogicError):
    kind = 'InvalidQuantity'

    def __init__(self, message="Quantity must be greater than 0", payload=None):
        super().__init__(message, 400, payload)


class InvalidBudgetError(BusinessLogicError):
    kind = 'InvalidBudget'

    def __init__(self, budget):
        super().__init__(f"Budget must be greater than 0 (got {budget})", 400, {'budget': str(budget)})


class BudgetBelowSpendError(BusinessLogicError):
    kind = 'BudgetBelowSpend'

    def __init__(self, budget, current_spend):
        super().__init__(
            f"Budget {budget} is below the current spend of {current_spend}",
            400,
            {'budget': str(budget), 'current_spend': str(current_spend)}
        )


class InvalidRecordError(BusinessLogicError):
    """Raised when a record fails constructor-time validation."""
    kind = 'InvalidRecord'

    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class EmptyCartError(BusinessLogicError):
    kind = 'EmptyCart'

    def __init__(self, message="The cart is empty"):
        super().__init__(message, 400)


class DuplicateTableError(BusinessLogicError):
    kind = 'DuplicateTable'

    def __init__(self, event_id, table_number):
        super().__init__(
            f"Table {table_number} already exists for event {event_id}",
            409,
            {'event_id': event_id, 'table_number': table_number}
        )


class TableHasHistoryError(BusinessLogicError):
    kind = 'TableHasHistory'

    def __init__(self, table_number):
        super().__init__(
            f"Cannot delete table {table_number}: it has recorded items. Clear or charge the tab first.",
            409,
            {'table_number': table_number}
        )


class TableClosedError(BusinessLogicError):
    kind = 'TableClosed'

    def __init__(self, table_number):
        super().__init__(f"Table {table_number} is already closed", 409, {'table_number': table_number})


class DuplicateRequestError(BusinessLogicError):
    """Raised when an idempotency key is already bound to another manager's order."""
    kind = 'DuplicateRequest'

    def __init__(self, idempotency_key):
        super().__init__(
            f"Idempotency key {idempotency_key} was already used",
            409,
            {'idempotency_key': idempotency_key}
        )


class ConcurrencyConflictError(BarPosError):
    """Contention signal: a concurrent write invalidated our reads. Safe to retry."""
    kind = 'ConcurrencyConflict'

    def __init__(self, message="The records changed while the operation was running. Please retry."):
        super().__init__(message, 409, {'retryable': True})


class AuthorizationDeniedError(BarPosError):
    """Raised when a user lacks permission for an action."""
    kind = 'AuthorizationDenied'

    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)
