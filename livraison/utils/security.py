from fastapi import Request, HTTPException, Depends
from typing import Optional, Dict, Any
import logging

from livraison import config
import livraison.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None

def determine_role(email: Optional[str], metadata: Dict[str, Any] | None) -> str:
    """
    Rôle applicatif:
    - "admin" si metadata.role == "admin" ou email listé dans ADMIN_EMAILS (compte marchand)
    - "user" sinon
    """
    if str((metadata or {}).get("role", "")).lower() == "admin":
        return "admin"
    if email and email in config.ADMIN_EMAILS:
        return "admin"
    return "user"

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l’utilisateur depuis supabase.auth.get_user(access_token)."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
        }
    metadata = user.get("user_metadata") or {}
    return {
        "id": user.get("id"),
        "email": user.get("email"),
        "metadata": metadata,
        "role": determine_role(user.get("email"), metadata),
    }

def get_current_user(request: Request) -> Dict[str, Any]:
    token = _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")
    try:
        user = get_user_from_token(token)
    except Exception:
        logger.exception("security.get_current_user: token invalide")
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return user

def optional_user(request: Request) -> Optional[Dict[str, Any]]:
    """
    Mode invité: retourne None si aucun token n’est fourni.
    Un token présent mais invalide reste une erreur 401 (pas de bascule silencieuse en invité).
    """
    if not _bearer_token(request):
        return None
    return get_current_user(request)

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user

def mask_secret(value: Optional[str], visible: int = 8) -> str:
    """Masque un secret pour les logs (client_secret, clé éphémère): garde un court préfixe."""
    if not value:
        return "<vide>"
    return value[:visible] + "…" if len(value) > visible else "…"
