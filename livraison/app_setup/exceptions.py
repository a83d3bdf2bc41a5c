"""
Gestionnaires d’exceptions de l’API.
- HTTPException: JSON {"detail": ...} (orders API, auth).
- RequestValidationError: 422 {"detail": [...]} avec journalisation du chemin (invariants de commande).
Le endpoint de paiement produit lui-même ses réponses {"error": ...}.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_json(request: Request, exc: HTTPException):
        if exc.status_code >= 500:
            logger.error("HTTP %s sur %s: %s", exc.status_code, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_json(request: Request, exc: RequestValidationError):
        logger.warning("Requête invalide sur %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})
