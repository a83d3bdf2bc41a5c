"""
Limitation de débit optionnelle (dépendance FastAPI).
- Redis via fastapi-limiter quand le lifespan l’a initialisé (app.state.rate_limit_enabled).
- Compteur local en mémoire si LOCAL_RATE_LIMIT_FALLBACK=1 ou si le lifespan a basculé en local.
- Clé: token Bearer hashé (utilisateur connecté) sinon IP, par chemin (invités inclus).
"""
from typing import Dict, List
import hashlib
import logging
import os
import time

from fastapi import Request, Response, HTTPException

logger = logging.getLogger(__name__)

def client_key(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    path = request.url.path
    if auth_header.startswith("Bearer "):
        digest = hashlib.sha256(auth_header[7:].encode("utf-8")).hexdigest()[:16]
        return f"user:{digest}:{path}"
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{path}"

def _use_local_store(request: Request) -> bool:
    return os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1" or bool(getattr(request.app.state, "rate_limit_local", False))

def _hit_local(request: Request, times: int, seconds: int) -> None:
    now = time.time()
    key = client_key(request)
    store: Dict[str, List[float]] = getattr(request.app.state, "_rl_store", None) or {}
    hits = [t for t in store.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        logger.warning("rate_limit: limite atteinte key=%s", key)
        raise HTTPException(status_code=429, detail="Too Many Requests")
    hits.append(now)
    store[key] = hits
    request.app.state._rl_store = store

def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        if _use_local_store(request):
            _hit_local(request, times, seconds)
            return
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return client_key(req)

        try:
            await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception as e:
            # Redis indisponible en cours de route: pas de 429
            logger.warning("rate_limit: fastapi-limiter indisponible: %s", e)
    return _dep
