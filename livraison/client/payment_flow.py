"""
Orchestrateur de paiement côté appareil (machine à états).

    idle -> requesting_intent -> intent_ready | failed
    intent_ready -> presenting_sheet -> confirmed | cancelled | failed
    reset() -> idle

- Le montant est envoyé en unités majeures: la conversion en unité mineure est faite par le serveur.
- Chaque initialize_payment prend un nouveau jeton de séquence; une réponse d’un jeton dépassé est ignorée.
- L’annulation par l’utilisateur (code "Canceled") est un résultat à part entière, sans alerte.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from livraison import config
from livraison.payments.amounts import payment_intent_id_from_client_secret
from livraison.payments.models import PaymentIntentResult
from .api import PaymentFlowError

logger = logging.getLogger(__name__)

CANCELED_CODE = "Canceled"


class PaymentState(str, Enum):
    IDLE = "idle"
    REQUESTING_INTENT = "requesting_intent"
    INTENT_READY = "intent_ready"
    PRESENTING_SHEET = "presenting_sheet"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset({PaymentState.CONFIRMED, PaymentState.CANCELLED, PaymentState.FAILED})


@dataclass(frozen=True)
class PaymentSheetConfig:
    merchant_display_name: str
    customer_id: str
    customer_ephemeral_key_secret: str
    payment_intent_client_secret: str
    return_url: str
    allows_delayed_payment_methods: bool = True


@dataclass(frozen=True)
class SheetError:
    code: str
    message: str


class PaymentSheet(Protocol):
    """Pont vers le SDK de paiement de l’appareil. Chaque méthode retourne une erreur ou None."""

    async def init_payment_sheet(self, sheet_config: PaymentSheetConfig) -> Optional[SheetError]: ...

    async def present_payment_sheet(self) -> Optional[SheetError]: ...


class IntentSource(Protocol):
    async def create_payment_intent(self, amount: float) -> PaymentIntentResult: ...


Notify = Callable[[str, str], None]


def _log_notify(title: str, message: str) -> None:
    logger.warning("%s: %s", title, message)


class PaymentFlow:
    def __init__(
        self,
        intents: IntentSource,
        sheet: PaymentSheet,
        *,
        notify: Optional[Notify] = None,
        merchant_display_name: Optional[str] = None,
        return_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self._intents = intents
        self._sheet = sheet
        self._notify = notify or _log_notify
        self.merchant_display_name = merchant_display_name or config.MERCHANT_DISPLAY_NAME
        self.return_url = return_url or config.PAYMENT_RETURN_URL
        self.timeout = timeout if timeout is not None else config.PAYMENT_REQUEST_TIMEOUT
        self.state = PaymentState.IDLE
        self.intent: Optional[PaymentIntentResult] = None
        self.last_error: Optional[str] = None
        self._sequence = 0

    @property
    def payment_intent_id(self) -> Optional[str]:
        if not self.intent:
            return None
        return payment_intent_id_from_client_secret(self.intent.payment_intent)

    def reset(self) -> None:
        # Invalide toute réponse encore en vol
        self._sequence += 1
        self.state = PaymentState.IDLE
        self.intent = None
        self.last_error = None

    def _fail(self, title: str, message: str) -> bool:
        self.state = PaymentState.FAILED
        self.last_error = message
        self._notify(title, message)
        return False

    async def _bounded(self, awaitable: Awaitable):
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    async def initialize_payment(self, amount: float) -> bool:
        """
        Demande un PaymentIntent puis configure la feuille de paiement.
        Retourne True si l’état final est intent_ready.
        """
        self._sequence += 1
        token = self._sequence
        self.state = PaymentState.REQUESTING_INTENT
        self.intent = None
        self.last_error = None
        logger.info("payment_flow.initialize_payment amount=%s seq=%s", amount, token)

        try:
            intent = await self._bounded(self._intents.create_payment_intent(amount))
        except asyncio.TimeoutError:
            if token != self._sequence:
                return False
            return self._fail("Erreur", "Le serveur de paiement ne répond pas. Veuillez réessayer.")
        except PaymentFlowError as e:
            if token != self._sequence:
                return False
            return self._fail("Erreur", e.message)
        except Exception as e:
            logger.exception("payment_flow.initialize_payment erreur inattendue")
            if token != self._sequence:
                return False
            return self._fail("Erreur", str(e) or "Le paiement n'a pas pu être initialisé")
        if token != self._sequence:
            logger.info("payment_flow.initialize_payment réponse obsolète ignorée seq=%s", token)
            return False

        sheet_config = PaymentSheetConfig(
            merchant_display_name=self.merchant_display_name,
            customer_id=intent.customer,
            customer_ephemeral_key_secret=intent.ephemeral_key,
            payment_intent_client_secret=intent.payment_intent,
            return_url=self.return_url,
        )
        try:
            error = await self._bounded(self._sheet.init_payment_sheet(sheet_config))
        except asyncio.TimeoutError:
            if token != self._sequence:
                return False
            return self._fail("Erreur Stripe", "Initialisation de la feuille de paiement expirée.")
        except Exception as e:
            logger.exception("payment_flow.initialize_payment erreur de la feuille de paiement")
            if token != self._sequence:
                return False
            return self._fail("Erreur Stripe", f"Echec de l'initialisation: {e}")
        if token != self._sequence:
            return False
        if error:
            return self._fail("Erreur Stripe", f"Echec de l'initialisation: {error.message}")

        self.intent = intent
        self.state = PaymentState.INTENT_READY
        return True

    async def process_payment(self) -> bool:
        """Présente la feuille de paiement. Valide uniquement dans l’état intent_ready."""
        if self.state != PaymentState.INTENT_READY:
            logger.warning("payment_flow.process_payment appelé dans l'état %s", self.state.value)
            return False
        self.state = PaymentState.PRESENTING_SHEET
        try:
            error = await self._sheet.present_payment_sheet()
        except Exception as e:
            logger.exception("payment_flow.process_payment erreur de présentation")
            return self._fail("Erreur", str(e) or "Le paiement n'a pas pu être finalisé")
        if error is None:
            self.state = PaymentState.CONFIRMED
            logger.info("payment_flow.process_payment confirmé payment_intent_id=%s", self.payment_intent_id)
            return True
        if error.code == CANCELED_CODE:
            self.state = PaymentState.CANCELLED
            logger.info("payment_flow.process_payment annulé par l'utilisateur")
            return False
        return self._fail("Paiement Échoué", error.message)
