"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

- En production, un process manager (ex: gunicorn -k uvicorn.workers.UvicornWorker) importe `livraison.asgi:app`.
- Toute la configuration (routers, middlewares, rate limiting) est centralisée dans livraison.app_setup.
"""

from livraison.app import app

__all__ = ["app"]
