# kiosk/domain/errors.py
"""
Typed domain errors.

Aggregates and services raise these; the API layer maps `kind` to an HTTP
status (see kiosk/api/errors.py). `code` is the stable identifier returned to
clients in the "error" field.
"""

VALIDATION = "validation"
NOT_FOUND = "not_found"
CONFLICT = "conflict"
CONSISTENCY = "consistency"
UPSTREAM = "upstream"


class DomainError(Exception):
    kind = CONFLICT
    code = "DomainError"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    def default_message(self) -> str:
        return self.code


# --- validation ---------------------------------------------------------

class InvalidQuantity(DomainError):
    kind = VALIDATION
    code = "InvalidQuantity"

    def default_message(self):
        return "Quantity must be greater than zero"


class InvalidAmount(DomainError):
    kind = VALIDATION
    code = "InvalidAmount"

    def default_message(self):
        return "Payment amount must be greater than zero"


class InvalidDecision(DomainError):
    kind = VALIDATION
    code = "InvalidDecision"

    def default_message(self):
        return "Payment decision must be 'approved' or 'declined'"


# --- not found ----------------------------------------------------------

class NotFound(DomainError):
    kind = NOT_FOUND


class CartNotFound(NotFound):
    code = "CartNotFound"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"No cart for session {session_id}")


class ItemNotFound(NotFound):
    code = "ItemNotFound"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Cart item {item_id} not found")


class PaymentNotFound(NotFound):
    code = "PaymentNotFound"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} not found")


class OrderNotFound(NotFound):
    code = "OrderNotFound"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class ProductNotFound(NotFound):
    code = "ProductNotFound"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class CustomerNotFound(NotFound):
    code = "CustomerNotFound"

    def __init__(self, customer_id: int):
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} not found")


# --- state conflicts ----------------------------------------------------

class EmptyCart(DomainError):
    code = "EmptyCart"

    def default_message(self):
        return "Cannot confirm an empty cart"


class CartNotConfirmed(DomainError):
    code = "CartNotConfirmed"

    def default_message(self):
        return "Cart has not been confirmed"


class CartAlreadyConfirmed(DomainError):
    code = "CartAlreadyConfirmed"

    def default_message(self):
        return "Cart is confirmed and can no longer be modified"


class ProductUnavailable(DomainError):
    code = "ProductUnavailable"

    def __init__(self, product_name: str):
        super().__init__(f"Product '{product_name}' is not available")


class NotPending(DomainError):
    code = "NotPending"

    def __init__(self, payment_id: str, status: str):
        self.status = status
        super().__init__(f"Payment {payment_id} is not pending (status: {status})")


class NotApproved(DomainError):
    code = "NotApproved"

    def default_message(self):
        return "Only an approved payment can be linked to an order"


class AlreadyLinked(DomainError):
    code = "AlreadyLinked"

    def __init__(self, payment_id: str, order_id: str):
        self.order_id = order_id
        super().__init__(f"Payment {payment_id} is already linked to order {order_id}")


class PaymentAlreadyResolved(DomainError):
    code = "PaymentAlreadyResolved"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"A payment for this session is already {status}")


class PaymentNotApproved(DomainError):
    code = "PaymentNotApproved"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Payment is not approved (status: {status})")


class SessionMismatch(DomainError):
    code = "SessionMismatch"

    def default_message(self):
        return "Session id does not match the payment"


class InvalidStatusTransition(DomainError):
    code = "InvalidStatusTransition"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from {current} to {requested}")


class AlreadyPreparing(InvalidStatusTransition):
    code = "AlreadyPreparing"


class ConcurrencyConflict(DomainError):
    code = "ConcurrencyConflict"

    def default_message(self):
        return "Resource was modified by another request, retry"


# --- consistency --------------------------------------------------------

class AmountMismatch(DomainError):
    kind = CONSISTENCY
    code = "AmountMismatch"

    def default_message(self):
        return "Amount paid differs from the payment amount"


class CheckoutAmountMismatch(DomainError):
    kind = CONSISTENCY
    code = "CheckoutAmountMismatch"

    def default_message(self):
        return "Amount differs from the cart total"


class InsufficientStock(DomainError):
    kind = CONSISTENCY
    code = "InsufficientStock"

    def __init__(self, product_name: str, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Not enough stock for product {product_name} (available {available}, requested {requested})"
        )


# --- upstream -----------------------------------------------------------

class PaymentGatewayError(DomainError):
    kind = UPSTREAM
    code = "PaymentGatewayError"

    def default_message(self):
        return "Payment gateway unavailable"
