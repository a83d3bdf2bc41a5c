"""
Conversion des montants (pure, sans Stripe ni DB).

Stripe attend des montants entiers dans l’unité la plus petite de la devise:
- devises « zéro décimale » (JPY, KRW, VND, ...): unité mineure == unité majeure
- autres devises (MAD, EUR, USD, ...): montant × 100

Arrondi: au plus proche, demi s’éloignant de zéro (ROUND_HALF_UP sur Decimal).
Le calcul passe par Decimal(str(amount)) pour éviter les artefacts binaires (1.005 -> 101).
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from numbers import Real

# module livraison.payments.amounts
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})

# Montant de substitution quand la requête n’en fournit pas (diagnostic uniquement)
DEFAULT_DIAGNOSTIC_AMOUNT = 1000

def is_zero_decimal(currency: str) -> bool:
    return (currency or "").strip().upper() in ZERO_DECIMAL_CURRENCIES

def is_valid_amount(amount) -> bool:
    """Vrai si amount est un nombre réel fini (les booléens sont refusés)."""
    if isinstance(amount, bool) or not isinstance(amount, Real):
        return False
    return math.isfinite(amount)

def format_amount_for_stripe(amount: float, currency: str) -> int:
    """
    Convertit un montant en unités majeures vers l’entier attendu par Stripe.
    - amount: nombre fini (ValueError sinon)
    - currency: code ISO 4217, insensible à la casse
    """
    if not is_valid_amount(amount):
        raise ValueError(f"Montant invalide: {amount!r}")
    value = Decimal(str(amount))
    if not is_zero_decimal(currency):
        value = value * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def payment_intent_id_from_client_secret(client_secret: str) -> str:
    """Extrait l’identifiant pi_... d’un client_secret de la forme pi_xxx_secret_yyy."""
    intent_id, sep, _ = (client_secret or "").partition("_secret_")
    if not sep or not intent_id.startswith("pi_"):
        raise ValueError("client_secret de PaymentIntent invalide")
    return intent_id
