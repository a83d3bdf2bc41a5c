"""
Cas d'usage 'payments': émission d’un PaymentIntent pour le paiement in-app.

Enchaînement (trois appels Stripe dépendants, sans retry):
  1) customer       -> client Stripe transitoire
  2) ephemeral_key  -> clé éphémère liée au client
  3) payment_intent -> intent pour le montant formaté, metadata.order_id = référence générée

Politique de compensation (échec après création du client):
- par défaut aucune: l’échec est journalisé avec order_ref/step/customer_id pour rapprochement manuel
- STRIPE_CLEANUP_CUSTOMER_ON_FAILURE=1: suppression best-effort du client créé
"""
import logging
from typing import Callable, Optional, TypeVar
from uuid import uuid4

from livraison import config
from livraison.utils.security import mask_secret
from . import stripe_client
from .amounts import format_amount_for_stripe
from .exceptions import PaymentProcessorError
from .models import PaymentIntentResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

STEP_CUSTOMER = "customer"
STEP_EPHEMERAL_KEY = "ephemeral_key"
STEP_PAYMENT_INTENT = "payment_intent"

def new_order_ref() -> str:
    return f"order_{uuid4().hex}"

def _run_step(step: str, call: Callable[[], T], *, order_ref: str, customer_id: Optional[str] = None) -> T:
    try:
        return call()
    except Exception as e:
        logger.error(
            "payments.create_payment_intent step=%s failed order_ref=%s customer_id=%s error=%s",
            step, order_ref, customer_id, e,
        )
        raise PaymentProcessorError(
            step,
            str(e) or "Error creating payment intent",
            customer_id=customer_id,
            order_ref=order_ref,
        ) from e

def _compensate(customer_id: str, order_ref: str) -> None:
    if not config.STRIPE_CLEANUP_CUSTOMER_ON_FAILURE:
        logger.warning(
            "payments.create_payment_intent left customer for manual reconciliation customer_id=%s order_ref=%s",
            customer_id, order_ref,
        )
        return
    try:
        stripe_client.delete_customer(customer_id)
        logger.info("payments.create_payment_intent deleted customer_id=%s order_ref=%s", customer_id, order_ref)
    except Exception:
        logger.exception("payments.create_payment_intent cleanup failed customer_id=%s order_ref=%s", customer_id, order_ref)

def create_payment_intent(
    amount: float,
    *,
    currency: Optional[str] = None,
    user_id: Optional[str] = None,
) -> PaymentIntentResult:
    """
    Crée client + clé éphémère + PaymentIntent et renvoie les secrets pour le SDK mobile.
    - amount: montant en unités majeures (déjà validé par la vue)
    - currency: par défaut config.CURRENCY (le client ne la fournit jamais)
    - user_id: identité de session, ou None en mode invité
    Soulève PaymentConfigError (clé absente, aucun appel) ou PaymentProcessorError (étape Stripe).
    """
    stripe_client.require_stripe()
    currency = (currency or config.CURRENCY).upper()
    minor_amount = format_amount_for_stripe(amount, currency)
    order_ref = new_order_ref()
    owner = user_id or "guest"
    logger.info(
        "payments.create_payment_intent start order_ref=%s amount=%s currency=%s minor=%s user=%s",
        order_ref, amount, currency, minor_amount, owner,
    )

    customer_id = _run_step(
        STEP_CUSTOMER,
        lambda: stripe_client.create_customer(metadata={"user_id": owner}),
        order_ref=order_ref,
    )
    logger.info("payments.create_payment_intent customer created customer_id=%s order_ref=%s", customer_id, order_ref)

    try:
        ephemeral_secret = _run_step(
            STEP_EPHEMERAL_KEY,
            lambda: stripe_client.create_ephemeral_key(customer_id=customer_id),
            order_ref=order_ref,
            customer_id=customer_id,
        )
        intent = _run_step(
            STEP_PAYMENT_INTENT,
            lambda: stripe_client.create_payment_intent(
                amount=minor_amount,
                currency=currency,
                customer_id=customer_id,
                metadata={"order_id": order_ref, "user_id": owner},
            ),
            order_ref=order_ref,
            customer_id=customer_id,
        )
    except PaymentProcessorError:
        _compensate(customer_id, order_ref)
        raise

    result = PaymentIntentResult(
        payment_intent=intent["client_secret"],
        ephemeral_key=ephemeral_secret,
        customer=customer_id,
        publishable_key=stripe_client.publishable_key(),
    )
    if not result.publishable_key:
        logger.warning("payments.create_payment_intent STRIPE_PUBLISHABLE_KEY non configurée")
    logger.info(
        "payments.create_payment_intent ok order_ref=%s intent=%s client_secret=%s",
        order_ref, intent["id"], mask_secret(result.payment_intent),
    )
    return result
