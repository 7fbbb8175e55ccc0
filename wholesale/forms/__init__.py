from .checkout_form import CheckoutForm

__all__ = ["CheckoutForm"]
