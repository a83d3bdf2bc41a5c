# livraison.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du backend.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Stripe, Supabase), CORS/hosts
- Expose la devise du magasin: seule source de vérité pour la conversion en unités mineures
- Fournit les réglages côté client (URL du serveur de paiement, nom marchand, deep-link de retour)

Les modules lisent ces valeurs via `config.X` au moment de l'appel (et non à l'import),
ce qui permet aux tests de les monkeypatcher.
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")

# Environnement applicatif (exposé par /health-check)
APP_ENV = _clean_env(os.getenv("APP_ENV") or "development")
APP_VERSION = _clean_env(os.getenv("APP_VERSION") or "1.0.0")

# Stripe: clé secrète (serveur uniquement), clé publiable (renvoyée au SDK mobile)
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_PUBLISHABLE_KEY = _clean_env(
    os.getenv("STRIPE_PUBLISHABLE_KEY") or os.getenv("EXPO_PUBLIC_STRIPE_PUBLISHABLE_KEY") or ""
)
# Version d'API figée pour les clés éphémères (doit correspondre au SDK mobile)
STRIPE_API_VERSION = _clean_env(os.getenv("STRIPE_API_VERSION") or "2024-06-20")
# Devise du magasin (ISO 4217), jamais fournie par le client
CURRENCY = _clean_env(os.getenv("CURRENCY") or "MAD").upper()
# Politique de compensation: supprimer le client Stripe si une étape suivante échoue
STRIPE_CLEANUP_CUSTOMER_ON_FAILURE = _flag("STRIPE_CLEANUP_CUSTOMER_ON_FAILURE")

# Supabase: URLs et clés (public/anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Rôle marchand (transitions de statut côté restaurant)
ADMIN_EMAILS = [e.strip() for e in os.getenv("ADMIN_EMAILS", "admin@example.com").split(",") if e.strip()]

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Côté client (orchestrateur de paiement)
PAYMENT_SERVER_URL = _clean_env(
    os.getenv("PAYMENT_SERVER_URL") or os.getenv("EXPO_PUBLIC_STRIPE_REDIRECT_URL") or "http://localhost:8000"
)
MERCHANT_DISPLAY_NAME = os.getenv("MERCHANT_DISPLAY_NAME", "Livraison Express")
PAYMENT_RETURN_URL = _clean_env(os.getenv("PAYMENT_RETURN_URL") or "livraison://stripe-redirect")
DEFAULT_PAYMENT_REQUEST_TIMEOUT = 30.0

def _timeout(name: str, default: float) -> float:
    """Délai en secondes; une valeur illisible ou non positive retombe sur le défaut."""
    raw = _clean_env(os.getenv(name) or "")
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default

PAYMENT_REQUEST_TIMEOUT = _timeout("PAYMENT_REQUEST_TIMEOUT", DEFAULT_PAYMENT_REQUEST_TIMEOUT)

# Montant de diagnostic quand la requête n’en fournit pas (désactivé par défaut, jamais en production)
ALLOW_DIAGNOSTIC_AMOUNT = _flag("ALLOW_DIAGNOSTIC_AMOUNT")
