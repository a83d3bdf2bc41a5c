from datetime import datetime, timezone

from fastapi import APIRouter

from livraison import config
from livraison.payments import stripe_client

router = APIRouter(tags=["Health"])

@router.get("/health")
def health_root():
    return {"ok": True}

@router.get("/health-check")
def health_check():
    """Diagnostic de déploiement: ne révèle jamais les secrets, seulement leur présence."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": config.APP_ENV,
        "stripeConfigured": stripe_client.is_configured(),
        "version": config.APP_VERSION,
    }
