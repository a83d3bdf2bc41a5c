"""
Module 'client': orchestration côté appareil du paiement in-app et du checkout.
Le SDK de paiement (feuille de paiement) est injecté via le protocole PaymentSheet.
"""

from .api import PaymentFlowError, PaymentIntentClient, HttpOrderStore
from .payment_flow import (
    PaymentState,
    PaymentSheet,
    PaymentSheetConfig,
    SheetError,
    PaymentFlow,
)
from .checkout import CheckoutFlow, CheckoutPreferences, CheckoutResult

__all__ = [
    "PaymentFlowError",
    "PaymentIntentClient",
    "HttpOrderStore",
    "PaymentState",
    "PaymentSheet",
    "PaymentSheetConfig",
    "SheetError",
    "PaymentFlow",
    "CheckoutFlow",
    "CheckoutPreferences",
    "CheckoutResult",
]
