# wholesale/services/__init__.py
from .api_client import WholesaleApi, WholesaleApiError
from .cart import CartStore, FileCartStorage, SessionCartStorage, make_cart_line
from .checkout import CartValidationError, CheckoutError, CheckoutService, ContactInfo
from .conflict import CartConflict, ConflictState, PendingAction
from .payments import PaymentError, StripePaymentService

__all__ = [
    "CartConflict",
    "CartStore",
    "CartValidationError",
    "CheckoutError",
    "CheckoutService",
    "ConflictState",
    "ContactInfo",
    "FileCartStorage",
    "PaymentError",
    "PendingAction",
    "SessionCartStorage",
    "StripePaymentService",
    "WholesaleApi",
    "WholesaleApiError",
    "make_cart_line",
]
