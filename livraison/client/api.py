"""
Clients HTTP côté application (httpx.AsyncClient).
- PaymentIntentClient: POST /create-payment-intent, traduit les échecs HTTP en messages lisibles.
- HttpOrderStore: POST /api/v1/commandes avec le token de session (Bearer).
Un httpx.AsyncClient peut être injecté (tests: MockTransport / ASGITransport).
"""
from typing import Any, Callable, Dict, Optional
import logging

import httpx

from livraison import config
from livraison.commandes.models import OrderDraft
from livraison.payments.models import PaymentIntentResult

logger = logging.getLogger(__name__)

REQUIRED_INTENT_FIELDS = ("paymentIntent", "ephemeralKey", "customer")

TokenProvider = Callable[[], Optional[str]]


class PaymentFlowError(Exception):
    """Échec lisible par l’utilisateur (message affiché tel quel)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _server_error(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return (response.text or "").strip()
    if isinstance(data, dict):
        return str(data.get("error") or data.get("detail") or "")
    return ""


def _auth_headers(token_provider: Optional[TokenProvider]) -> Dict[str, str]:
    token = token_provider() if token_provider else None
    return {"Authorization": f"Bearer {token}"} if token else {}


class PaymentIntentClient:
    """Demande au serveur un PaymentIntent pour un montant en unités majeures."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        token_provider: Optional[TokenProvider] = None,
    ):
        self.base_url = (base_url or config.PAYMENT_SERVER_URL).rstrip("/")
        self._client = client
        self._token_provider = token_provider

    async def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, headers=headers)
        async with httpx.AsyncClient() as client:
            return await client.post(url, json=payload, headers=headers)

    async def create_payment_intent(self, amount: float) -> PaymentIntentResult:
        url = f"{self.base_url}/create-payment-intent"
        logger.info("client.create_payment_intent amount=%s url=%s", amount, url)
        try:
            response = await self._post(url, {"amount": amount}, _auth_headers(self._token_provider))
        except httpx.HTTPError as e:
            logger.error("client.create_payment_intent réseau: %s", e)
            raise PaymentFlowError(f"Impossible de joindre le serveur de paiement: {e}") from e

        if response.status_code == 404:
            raise PaymentFlowError("Serveur de paiement non trouvé. Vérifiez l'URL.", status_code=404)
        if response.status_code >= 500:
            detail = _server_error(response)
            message = "Erreur interne du serveur de paiement."
            raise PaymentFlowError(f"{message} {detail}".strip(), status_code=response.status_code)
        if response.status_code >= 400:
            detail = _server_error(response) or f"HTTP {response.status_code}"
            raise PaymentFlowError(f"Requête de paiement refusée: {detail}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise PaymentFlowError("Réponse invalide du serveur de paiement.") from e
        missing = [f for f in REQUIRED_INTENT_FIELDS if not (isinstance(data, dict) and data.get(f))]
        if missing:
            raise PaymentFlowError(f"Réponse incomplète du serveur de paiement (manquant: {', '.join(missing)})")
        return PaymentIntentResult.model_validate(data)


class HttpOrderStore:
    """Enregistre la commande via l’API /api/v1/commandes (utilisateur connecté)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token_provider: TokenProvider,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or config.PAYMENT_SERVER_URL).rstrip("/")
        self._client = client
        self._token_provider = token_provider

    async def create_order(self, draft: OrderDraft, payment_intent_id: Optional[str] = None) -> str:
        payload = draft.model_dump(mode="json", by_alias=True)
        if draft.allow_zero_total:
            payload["allowZeroTotal"] = True
        if payment_intent_id:
            payload["paymentIntentId"] = payment_intent_id
        url = f"{self.base_url}/api/v1/commandes"
        headers = _auth_headers(self._token_provider)
        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise PaymentFlowError(f"Impossible de joindre le serveur: {e}") from e

        if response.status_code >= 400:
            detail = _server_error(response) or f"HTTP {response.status_code}"
            raise PaymentFlowError(f"Impossible de passer la commande: {detail}", status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise PaymentFlowError("Réponse invalide du serveur", status_code=response.status_code) from e
        order_id = data.get("orderId") if isinstance(data, dict) else None
        if not order_id:
            logger.error("client.create_order réponse sans orderId payment_intent_id=%s", payment_intent_id)
            raise PaymentFlowError("Réponse invalide du serveur", status_code=response.status_code)
        return str(order_id)
