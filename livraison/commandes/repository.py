"""
Accès aux données pour la feature 'commandes' (Supabase).
- Écritures via le client service-role (bypass RLS), filtrage par user_id explicite.
- Les lectures propagent les erreurs (le service distingue « introuvable » et « panne »).
- Les écritures retournent None/False en cas d’échec, après journalisation.
"""
from typing import Any, Dict, List, Optional
import logging

from postgrest.exceptions import APIError

import livraison.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

ORDERS_TABLE = "commandes"
CART_TABLE = "panier"
# Violation de contrainte unique (commandes.payment_intent_id)
UNIQUE_VIOLATION = "23505"


class DuplicatePaymentIntent(Exception):
    """Une commande existe déjà pour ce PaymentIntent (insertion concurrente)."""


# module livraison.commandes.repository
def insert_order(row: Dict[str, Any]) -> Optional[dict]:
    """
    Insère une commande complète (identité et date déjà attribuées par le service).
    - Retourne la ligne insérée, ou None en cas d’erreur.
    - Lève DuplicatePaymentIntent si payment_intent_id est déjà pris (index unique, cf. sql/commandes.sql).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .insert(row)
            .execute()
        )
        rows = res.data or []
        return rows[0] if isinstance(rows, list) and rows else row
    except APIError as e:
        if getattr(e, "code", None) == UNIQUE_VIOLATION and row.get("payment_intent_id"):
            logger.info("commandes.repository.insert_order doublon payment_intent_id=%s", row.get("payment_intent_id"))
            raise DuplicatePaymentIntent(row["payment_intent_id"]) from e
        logger.exception("commandes.repository.insert_order failed id=%s user_id=%s", row.get("id"), row.get("user_id"))
        return None
    except Exception:
        logger.exception("commandes.repository.insert_order failed id=%s user_id=%s", row.get("id"), row.get("user_id"))
        return None

def fetch_order(order_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    """Retourne la commande (limitée à user_id si fourni) ou None si introuvable."""
    query = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select("*")
        .eq("id", order_id)
    )
    if user_id:
        query = query.eq("user_id", user_id)
    res = query.limit(1).execute()
    rows = res.data or []
    return rows[0] if rows else None

def fetch_order_by_payment_intent(payment_intent_id: str) -> Optional[dict]:
    """Commande déjà créée pour ce PaymentIntent (idempotence des retries client)."""
    res = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select("*")
        .eq("payment_intent_id", payment_intent_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def fetch_user_orders(user_id: str, limit: int = 50) -> List[dict]:
    """Commandes de l’utilisateur, plus récentes d’abord."""
    res = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("date", desc=True)
        .limit(limit)
        .execute()
    )
    return res.data or []

def update_order_status(order_id: str, status: str, expected_status: str) -> bool:
    """
    Met à jour le statut uniquement si le statut courant vaut expected_status
    (évite d’écraser une transition concurrente côté restaurant).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .update({"status": status})
            .eq("id", order_id)
            .eq("status", expected_status)
            .execute()
        )
        return len(res.data or []) > 0
    except Exception:
        logger.exception("commandes.repository.update_order_status failed id=%s status=%s", order_id, status)
        return False

def add_cart_items(user_id: str, items: List[Dict[str, Any]]) -> int:
    """Ajoute des lignes au panier de l’utilisateur (recommande). Retourne le nombre de lignes ajoutées."""
    if not items:
        return 0
    rows = [{"user_id": user_id, **item} for item in items]
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(CART_TABLE)
            .insert(rows)
            .execute()
        )
        return len(res.data or rows)
    except Exception:
        logger.exception("commandes.repository.add_cart_items failed user_id=%s", user_id)
        return 0
