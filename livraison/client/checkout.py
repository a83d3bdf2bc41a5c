"""
Orchestration du checkout côté appareil.
- build_draft: construit la commande à partir du panier et des préférences enregistrées
  (adresse sélectionnée, moyen de paiement), avec total == sous-total + frais de livraison.
- place_order: paiement à la livraison -> commande immédiate; carte -> PaymentFlow puis commande,
  uniquement après confirmation du paiement.
Les dépendances (session, stockage des commandes, flux de paiement) sont injectées.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from livraison.commandes.models import (
    DeliveryAddress,
    DeliveryOption,
    OrderDraft,
    OrderItem,
    PaymentMethod,
)
from .api import PaymentFlowError
from .payment_flow import Notify, PaymentFlow, PaymentState, _log_notify

logger = logging.getLogger(__name__)


class SessionProvider(Protocol):
    def current_user_id(self) -> Optional[str]: ...


class OrderStore(Protocol):
    async def create_order(self, draft: OrderDraft, payment_intent_id: Optional[str] = None) -> str: ...


@dataclass(frozen=True)
class CheckoutPreferences:
    """Préférences persistées (lecture seule pour le checkout)."""
    selected_address: Optional[DeliveryAddress] = None
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY


@dataclass(frozen=True)
class CheckoutResult:
    success: bool
    order_id: Optional[str] = None
    payment_state: Optional[PaymentState] = None
    payment_intent_id: Optional[str] = None
    message: Optional[str] = None


class CheckoutFlow:
    def __init__(
        self,
        session: SessionProvider,
        orders: OrderStore,
        payment: PaymentFlow,
        preferences: CheckoutPreferences,
        *,
        notify: Optional[Notify] = None,
    ):
        self.session = session
        self.orders = orders
        self.payment = payment
        self.preferences = preferences
        self._notify = notify or _log_notify

    def build_draft(
        self,
        items: List[OrderItem],
        restaurant: str,
        *,
        delivery_option: DeliveryOption = DeliveryOption.HOME_DELIVERY,
        delivery_fee: float = 0.0,
        notes: str = "",
        phone_number: Optional[str] = None,
    ) -> OrderDraft:
        address = self.preferences.selected_address if delivery_option == DeliveryOption.HOME_DELIVERY else None
        return OrderDraft.from_items(
            items,
            payment_method=self.preferences.payment_method,
            delivery_fee=delivery_fee if delivery_option == DeliveryOption.HOME_DELIVERY else 0.0,
            restaurant=restaurant,
            delivery_option=delivery_option,
            address=address,
            notes=notes,
            phone_number=phone_number,
        )

    def _refuse(self, title: str, message: str, **fields) -> CheckoutResult:
        self._notify(title, message)
        return CheckoutResult(success=False, message=message, **fields)

    async def place_order(self, draft: OrderDraft) -> CheckoutResult:
        user_id = self.session.current_user_id()
        if not user_id:
            return self._refuse("Authentification requise", "Veuillez vous connecter.")

        if draft.payment_method == PaymentMethod.CASH_ON_DELIVERY:
            try:
                order_id = await self.orders.create_order(draft)
            except PaymentFlowError as e:
                logger.error("checkout.place_order paiement à la livraison échec user_id=%s: %s", user_id, e.message)
                return self._refuse("Erreur de Commande", f"Impossible de passer la commande: {e.message}")
            self._notify("Commande Confirmée", f"Votre commande #{order_id[:6]}... a été enregistrée.")
            return CheckoutResult(success=True, order_id=order_id)

        if not await self.payment.initialize_payment(draft.total):
            return CheckoutResult(success=False, payment_state=self.payment.state, message=self.payment.last_error)
        if not await self.payment.process_payment():
            return CheckoutResult(success=False, payment_state=self.payment.state, message=self.payment.last_error)

        payment_intent_id = self.payment.payment_intent_id
        try:
            order_id = await self.orders.create_order(draft, payment_intent_id)
        except PaymentFlowError as e:
            # Paiement encaissé sans commande: rapprochement via payment_intent_id
            logger.error(
                "checkout.place_order commande non créée après paiement user_id=%s payment_intent_id=%s: %s",
                user_id, payment_intent_id, e.message,
            )
            return self._refuse(
                "Erreur Commande",
                f"Finalisation: {e.message}",
                payment_state=self.payment.state,
                payment_intent_id=payment_intent_id,
            )
        self._notify("Paiement Réussi", f"Votre commande #{order_id[:6]}... a été enregistrée.")
        return CheckoutResult(
            success=True,
            order_id=order_id,
            payment_state=self.payment.state,
            payment_intent_id=payment_intent_id,
        )
