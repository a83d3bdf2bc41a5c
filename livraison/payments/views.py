# module livraison.payments.views
"""Endpoint serveur du paiement in-app.
- POST /create-payment-intent: crée client + clé éphémère + PaymentIntent (rate-limité, invité autorisé).
Contrat de réponse:
- 200 {paymentIntent, ephemeralKey, customer, publishableKey}
- 400 {error} corps illisible ou montant non numérique (aucun appel Stripe)
- 500 {error} configuration manquante ou échec Stripe
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse

from livraison import config
from livraison.utils.security import optional_user
from livraison.utils.rate_limit import optional_rate_limit
from livraison.payments import service as payments_service
from livraison.payments.amounts import DEFAULT_DIAGNOSTIC_AMOUNT, is_valid_amount
from livraison.payments.exceptions import PaymentConfigError, PaymentProcessorError

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Payments API"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/create-payment-intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_payment_intent(request: Request, user: Optional[Dict[str, Any]] = Depends(optional_user)):
    """Crée un PaymentIntent pour le montant du panier.
    Étapes:
    - Parse le JSON du body (400 si illisible ou pas un objet).
    - Montant absent: 400, sauf ALLOW_DIAGNOSTIC_AMOUNT=1 (montant de diagnostic, journalisé).
    - Montant non numérique ou <= 0: 400.
    - Délègue au service; la devise vient de la configuration serveur.
    """
    # Body attendu:
    # { "amount": 123.5 }   (unités majeures, ex: MAD)
    try:
        body = await request.json()
    except ValueError as e:
        logger.warning("payments.create_payment_intent corps invalide: %s", e)
        return _error(400, "Invalid request body")
    if not isinstance(body, dict):
        return _error(400, "Invalid request body")

    amount = body.get("amount")
    if amount is None:
        if not config.ALLOW_DIAGNOSTIC_AMOUNT:
            return _error(400, "Amount is required")
        logger.warning("payments.create_payment_intent montant absent, montant de diagnostic=%s", DEFAULT_DIAGNOSTIC_AMOUNT)
        amount = DEFAULT_DIAGNOSTIC_AMOUNT
    if not is_valid_amount(amount):
        logger.warning("payments.create_payment_intent montant invalide: %r", amount)
        return _error(400, "Amount must be a number")
    if amount <= 0:
        return _error(400, "Amount must be greater than zero")

    try:
        result = payments_service.create_payment_intent(amount, user_id=(user or {}).get("id"))
    except PaymentConfigError as e:
        logger.error("payments.create_payment_intent configuration: %s", e)
        return _error(500, str(e))
    except PaymentProcessorError as e:
        return _error(500, str(e))
    except Exception as e:
        logger.exception("Erreur create_payment_intent")
        return _error(500, str(e) or "Error creating payment intent")
    return JSONResponse(result.to_response())
