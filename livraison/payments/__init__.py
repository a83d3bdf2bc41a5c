"""
Module 'payments' (feature-first): point d'entrée public.
Réunit conversion des montants, client Stripe, émission du PaymentIntent et erreurs associées.
"""

from .amounts import (
    ZERO_DECIMAL_CURRENCIES,
    DEFAULT_DIAGNOSTIC_AMOUNT,
    format_amount_for_stripe,
    is_zero_decimal,
    is_valid_amount,
    payment_intent_id_from_client_secret,
)
from .exceptions import PaymentConfigError, PaymentProcessorError
from .models import PaymentIntentResult
from .service import create_payment_intent

__all__ = [
    # amounts
    "ZERO_DECIMAL_CURRENCIES",
    "DEFAULT_DIAGNOSTIC_AMOUNT",
    "format_amount_for_stripe",
    "is_zero_decimal",
    "is_valid_amount",
    "payment_intent_id_from_client_secret",
    # erreurs
    "PaymentConfigError",
    "PaymentProcessorError",
    # modèles
    "PaymentIntentResult",
    # services
    "create_payment_intent",
]
