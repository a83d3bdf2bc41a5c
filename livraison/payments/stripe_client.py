"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Chaque fonction correspond à un appel distant unique; l’enchaînement est fait par le service.
"""
import stripe
from typing import Any, Dict, Optional

from livraison import config
from .exceptions import PaymentConfigError

# module livraison.payments.stripe_client
def _get(obj: Any, key: str) -> Any:
    # Objets Stripe (StripeObject) ou dicts (tests)
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)

def is_configured() -> bool:
    return bool(config.STRIPE_SECRET_KEY)

def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l’emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY.
    - Soulève PaymentConfigError si la clé est absente: aucun appel distant ne doit partir.
    """
    if not config.STRIPE_SECRET_KEY:
        raise PaymentConfigError("Stripe configuration missing")
    stripe.api_key = config.STRIPE_SECRET_KEY
    return stripe

def create_customer(*, metadata: Dict[str, str]) -> str:
    """Crée un client Stripe transitoire. Retour: customer id (cus_...)."""
    require_stripe()
    customer = stripe.Customer.create(metadata=metadata)
    return _get(customer, "id")

def delete_customer(customer_id: str) -> None:
    """Supprime un client Stripe (compensation optionnelle après échec)."""
    require_stripe()
    stripe.Customer.delete(customer_id)

def create_ephemeral_key(*, customer_id: str) -> str:
    """
    Crée une clé éphémère liée au client, pour la version d’API du SDK mobile.
    Retour: le secret de la clé (ek_...).
    """
    require_stripe()
    key = stripe.EphemeralKey.create(
        customer=customer_id,
        stripe_version=config.STRIPE_API_VERSION,
    )
    return _get(key, "secret")

def create_payment_intent(
    *,
    amount: int,
    currency: str,
    customer_id: str,
    metadata: Dict[str, str],
) -> Dict[str, Any]:
    """
    Crée un PaymentIntent avec sélection automatique des moyens de paiement.
    - amount: entier en unité mineure (déjà formaté)
    - currency: code ISO 4217 (envoyé en minuscules à Stripe)
    Retour: {"id": "pi_...", "client_secret": "pi_..._secret_..."}
    """
    require_stripe()
    intent = stripe.PaymentIntent.create(
        amount=amount,
        currency=currency.lower(),
        customer=customer_id,
        automatic_payment_methods={"enabled": True},
        metadata=metadata,
    )
    return {"id": _get(intent, "id"), "client_secret": _get(intent, "client_secret")}

def retrieve_payment_intent(intent_id: str) -> Dict[str, Any]:
    """
    Relit un PaymentIntent (vérification serveur avant d’enregistrer une commande carte).
    Retour: {"id", "status", "amount", "currency", "metadata"}
    """
    require_stripe()
    intent = stripe.PaymentIntent.retrieve(intent_id)
    return {
        "id": _get(intent, "id"),
        "status": _get(intent, "status") or "",
        "amount": _get(intent, "amount"),
        "currency": (_get(intent, "currency") or "").upper(),
        "metadata": _get(intent, "metadata") or {},
    }

def publishable_key() -> Optional[str]:
    return config.STRIPE_PUBLISHABLE_KEY or None
