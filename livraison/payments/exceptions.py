"""
Erreurs de la feature 'payments'.
- PaymentConfigError: configuration serveur manquante (aucun appel Stripe tenté) -> 500
- PaymentProcessorError: une étape Stripe a échoué (message sous-jacent conservé) -> 500
"""
from typing import Optional


class PaymentConfigError(RuntimeError):
    pass


class PaymentProcessorError(RuntimeError):
    def __init__(
        self,
        step: str,
        message: str,
        *,
        customer_id: Optional[str] = None,
        order_ref: Optional[str] = None,
    ):
        super().__init__(message)
        self.step = step
        self.customer_id = customer_id
        self.order_ref = order_ref
