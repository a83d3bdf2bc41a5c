# module livraison.commandes.views

"""Endpoints de l’user story Commandes.
- POST /api/v1/commandes: enregistre la commande (après paiement carte confirmé, ou paiement à la livraison).
- GET /api/v1/commandes?filter=all|ongoing|completed: historique de l’utilisateur.
- GET /api/v1/commandes/{id} et /{id}/tracking: détail et suivi (lecture seule).
- POST /api/v1/commandes/{id}/cancel et /{id}/reorder: actions client.
- PATCH /api/v1/commandes/{id}/status: transition côté restaurant (admin).
Sécurité:
- require_user: toutes les lectures/écritures sont limitées à l’utilisateur connecté.
- require_admin: seules les transitions de statut restaurant.
Les réponses sont sérialisées via model_dump(by_alias=True) (camelCase, statut brut conservé).
"""
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from livraison.utils.security import require_user, require_admin
from livraison.utils.rate_limit import optional_rate_limit
from livraison.commandes import service as commandes_service
from livraison.commandes.models import Order, OrderDraft
from livraison.commandes.status import status_presentation

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/commandes", tags=["Commandes API"])


class CreateOrderRequest(OrderDraft):
    payment_intent_id: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str = Field(min_length=1)


def _order_payload(order: Order) -> Dict[str, Any]:
    payload = order.model_dump(mode="json", by_alias=True)
    payload["statusPresentation"] = status_presentation(order.status).model_dump()
    return payload


@router.post("", status_code=201, dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_order(body: CreateOrderRequest, user: dict = Depends(require_user)):
    """Crée la commande « pending ».
    - Carte: paymentIntentId obligatoire; le PaymentIntent est relu chez Stripe (statut + montant).
    - Un second appel avec le même paymentIntentId retourne la commande existante.
    """
    draft = OrderDraft.model_validate(
        {**body.model_dump(exclude={"payment_intent_id"}), "allow_zero_total": body.allow_zero_total}
    )
    try:
        order_id = commandes_service.create_order(draft, user.get("id"), body.payment_intent_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Erreur create_order payment_intent_id=%s", body.payment_intent_id)
        raise HTTPException(status_code=500, detail=str(e))
    return {"orderId": order_id}


@router.get("")
def list_orders(filter: str = "all", user: dict = Depends(require_user)):
    orders = commandes_service.list_orders(user.get("id"), filter)
    return {"orders": [_order_payload(o) for o in orders]}


@router.get("/{order_id}")
def get_order(order_id: str, user: dict = Depends(require_user)):
    return _order_payload(commandes_service.get_order_details(order_id, user.get("id")))


@router.get("/{order_id}/tracking")
def track_order(order_id: str, user: dict = Depends(require_user)):
    info = commandes_service.track_order(order_id, user.get("id"))
    return info.model_dump(mode="json", by_alias=True)


@router.post("/{order_id}/cancel")
def cancel_order(order_id: str, user: dict = Depends(require_user)):
    return _order_payload(commandes_service.cancel_order(order_id, user.get("id")))


@router.post("/{order_id}/reorder")
def reorder(order_id: str, user: dict = Depends(require_user)):
    added = commandes_service.reorder_items(order_id, user.get("id"))
    return {"added": added}


@router.patch("/{order_id}/status")
def update_status(order_id: str, body: StatusUpdateRequest, admin: dict = Depends(require_admin)):
    """Transition de statut côté restaurant (pending -> processing -> delivered, annulation avant livraison)."""
    order = commandes_service.update_order_status(order_id, body.status)
    logger.info("commandes.update_status par admin=%s id=%s status=%s", admin.get("id"), order_id, body.status)
    return _order_payload(order)
