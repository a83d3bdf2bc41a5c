"""
Registre central des routers.
- Paiement: /create-payment-intent
- API v1: commandes
- Health: /health, /health-check
"""
from fastapi import FastAPI
from livraison.payments import views as payments_views
from livraison.commandes import views as commandes_views
from livraison.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(payments_views.router)
    app.include_router(commandes_views.router)
    app.include_router(health_router)
