"""Couche service de l’user story Commandes.
Rôles:
- Créer la commande (statut « pending ») après paiement confirmé, ou directement en paiement à la livraison.
- Vérifier côté serveur le PaymentIntent d’une commande carte (statut + montant + devise).
- Lire, suivre, annuler, recommander; transitions de statut côté restaurant.
Les montants d’une commande ne sont jamais modifiés après sa création: seul le statut évolue.
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4
import logging

from fastapi import HTTPException
from pydantic import ValidationError

from livraison import config
from livraison.commandes import repository
from livraison.commandes.models import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Order,
    OrderDraft,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TrackingInfo,
    UnknownStatus,
    can_transition,
    parse_status,
)
from livraison.commandes.status import status_presentation
from livraison.payments import stripe_client
from livraison.payments.amounts import format_amount_for_stripe
from livraison.payments.exceptions import PaymentConfigError

logger = logging.getLogger(__name__)

# Statuts Stripe acceptés: « processing » couvre les moyens de paiement différés
ACCEPTED_INTENT_STATUSES = ("succeeded", "processing")
ESTIMATED_DELIVERY_TIME = "30-45 minutes"
# PaymentIntents créés sans session (metadata.user_id)
GUEST_OWNER = "guest"
ORDER_FILTERS = {
    "all": None,
    "ongoing": ACTIVE_STATUSES,
    "completed": TERMINAL_STATUSES,
}

def _verify_card_payment(payment_intent_id: str, total: float, currency: str, user_id: str) -> None:
    """Relit le PaymentIntent et vérifie qu’il couvre exactement le total de la commande.
    Le PaymentIntent doit appartenir à l’utilisateur (metadata.user_id) ou avoir été créé en invité.
    """
    try:
        intent = stripe_client.retrieve_payment_intent(payment_intent_id)
    except PaymentConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.exception("commandes.verify_card_payment failed payment_intent_id=%s", payment_intent_id)
        raise HTTPException(status_code=502, detail=f"Vérification du paiement impossible: {e}")

    owner = (intent.get("metadata") or {}).get("user_id")
    if owner not in (user_id, GUEST_OWNER):
        logger.warning(
            "commandes.verify_card_payment propriétaire différent payment_intent_id=%s owner=%s user_id=%s",
            payment_intent_id, owner, user_id,
        )
        raise HTTPException(status_code=403, detail="Paiement appartenant à un autre utilisateur")

    status = intent.get("status") or ""
    if status not in ACCEPTED_INTENT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Paiement non confirmé (status={status})")
    expected = format_amount_for_stripe(total, currency)
    if intent.get("amount") != expected or intent.get("currency") != currency.upper():
        logger.error(
            "commandes.verify_card_payment montant différent payment_intent_id=%s intent=%s %s attendu=%s %s",
            payment_intent_id, intent.get("amount"), intent.get("currency"), expected, currency,
        )
        raise HTTPException(status_code=400, detail="Montant du paiement différent du total de la commande")

def _existing_order_for_intent(payment_intent_id: str, user_id: str) -> Optional[str]:
    """Identifiant de la commande déjà créée pour ce PaymentIntent (403 si elle appartient à un autre)."""
    existing = repository.fetch_order_by_payment_intent(payment_intent_id)
    if not existing:
        return None
    if existing.get("user_id") != user_id:
        raise HTTPException(status_code=403, detail="Paiement appartenant à un autre utilisateur")
    logger.info("commandes.create_order déjà créée id=%s payment_intent_id=%s", existing.get("id"), payment_intent_id)
    return existing["id"]

def _to_row(order: Order) -> dict:
    return order.model_dump(mode="json")

def _load(row: dict) -> Order:
    order = Order.model_validate(row)
    if isinstance(order.status, UnknownStatus):
        logger.warning("commandes: statut inconnu id=%s status=%r", order.id, order.status.raw)
    return order

def create_order(draft: OrderDraft, user_id: str, payment_intent_id: Optional[str] = None) -> str:
    """Crée la commande et retourne son identifiant.
    - Carte: payment_intent_id obligatoire, vérifié auprès de Stripe; idempotent par PaymentIntent.
    - Paiement à la livraison: aucune vérification, payment_status = pending_cod.
    """
    if draft.allow_zero_total and not config.ALLOW_DIAGNOSTIC_AMOUNT:
        raise HTTPException(status_code=400, detail="Commande à montant nul refusée")
    currency = config.CURRENCY
    if draft.currency and draft.currency.upper() != currency:
        raise HTTPException(status_code=400, detail=f"Devise non supportée: {draft.currency}")

    if draft.payment_method == PaymentMethod.CARD:
        if not payment_intent_id:
            raise HTTPException(status_code=400, detail="paymentIntentId requis pour un paiement par carte")
        existing_id = _existing_order_for_intent(payment_intent_id, user_id)
        if existing_id:
            return existing_id
        _verify_card_payment(payment_intent_id, draft.total, currency, user_id)
        payment_status = PaymentStatus.PAID
    else:
        if payment_intent_id:
            logger.warning("commandes.create_order paymentIntentId ignoré pour un paiement à la livraison")
        payment_intent_id = None
        payment_status = PaymentStatus.PENDING_COD

    order = Order(
        **draft.model_dump(exclude={"currency"}),
        currency=currency,
        id=str(uuid4()),
        status=OrderStatus.PENDING,
        date=datetime.now(timezone.utc),
        user_id=user_id,
        payment_status=payment_status.value,
        payment_intent_id=payment_intent_id,
    )
    try:
        row = repository.insert_order(_to_row(order))
    except repository.DuplicatePaymentIntent:
        # Retry concurrent: l’autre requête a inséré entre la lecture et l’écriture
        existing_id = _existing_order_for_intent(payment_intent_id, user_id)
        if existing_id:
            return existing_id
        raise HTTPException(status_code=409, detail="Commande déjà en cours de création pour ce paiement")
    if not row:
        raise HTTPException(status_code=500, detail="Impossible de créer la commande")
    logger.info(
        "commandes.create_order id=%s user_id=%s total=%s %s payment=%s payment_intent_id=%s",
        order.id, user_id, order.total, currency, order.payment_method.value, payment_intent_id,
    )
    return order.id

def get_order_details(order_id: str, user_id: Optional[str] = None) -> Order:
    row = repository.fetch_order(order_id, user_id)
    if not row:
        raise HTTPException(status_code=404, detail="Commande introuvable")
    return _load(row)

def list_orders(user_id: str, filter: str = "all", limit: int = 50) -> List[Order]:
    """Commandes de l’utilisateur; filter: all | ongoing (en attente/en cours) | completed (livrée/annulée)."""
    if filter not in ORDER_FILTERS:
        raise HTTPException(status_code=400, detail=f"Filtre inconnu: {filter}")
    wanted = ORDER_FILTERS[filter]
    orders: List[Order] = []
    for row in repository.fetch_user_orders(user_id, limit=limit):
        try:
            order = _load(row)
        except ValidationError:
            logger.exception("commandes.list_orders ligne invalide id=%s", row.get("id"))
            continue
        if wanted is None or order.status in wanted:
            orders.append(order)
    return orders

def track_order(order_id: str, user_id: Optional[str] = None) -> TrackingInfo:
    """Suivi en lecture seule: ne modifie jamais le statut."""
    order = get_order_details(order_id, user_id)
    return TrackingInfo(
        order_id=order.id,
        status=order.status,
        presentation=status_presentation(order.status),
        is_terminal=order.is_terminal,
        estimated_delivery_time=ESTIMATED_DELIVERY_TIME if order.status in ACTIVE_STATUSES else None,
    )

def update_order_status(order_id: str, new_status: str, user_id: Optional[str] = None) -> Order:
    """Transition de statut (processus restaurant). Les statuts livrée/annulée sont terminaux."""
    order = get_order_details(order_id, user_id)
    target = parse_status(new_status)
    if isinstance(target, UnknownStatus):
        raise HTTPException(status_code=400, detail=f"Statut inconnu: {target.raw}")
    if order.is_terminal:
        raise HTTPException(status_code=409, detail=f"Commande déjà clôturée ({order.status.value})")
    if not can_transition(order.status, target):
        raise HTTPException(status_code=409, detail=f"Transition interdite: {order.status.value} -> {target.value}")
    if not repository.update_order_status(order_id, target.value, expected_status=order.status.value):
        raise HTTPException(status_code=409, detail="Mise à jour du statut impossible")
    logger.info("commandes.update_order_status id=%s %s -> %s", order_id, order.status.value, target.value)
    return order.model_copy(update={"status": target})

def cancel_order(order_id: str, user_id: str) -> Order:
    """Annulation côté client: uniquement tant que la commande est en attente."""
    order = get_order_details(order_id, user_id)
    if order.status != OrderStatus.PENDING:
        raise HTTPException(status_code=409, detail="Seules les commandes en attente peuvent être annulées")
    return update_order_status(order_id, OrderStatus.CANCELLED.value, user_id)

def reorder_items(order_id: str, user_id: str) -> int:
    """Copie les articles d’une commande passée dans le panier. Retourne le nombre d’articles ajoutés."""
    order = get_order_details(order_id, user_id)
    if not order.items:
        raise HTTPException(status_code=404, detail="Commande sans articles")
    cart_rows = [item.model_dump() for item in order.items]
    added = repository.add_cart_items(user_id, cart_rows)
    if not added:
        raise HTTPException(status_code=500, detail="Impossible d'ajouter les articles au panier")
    return added
