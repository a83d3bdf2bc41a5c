# module livraison.commandes.models
"""Modèles de la feature Commandes (pydantic v2, camelCase sur le fil).
- OrderStatus: enum fermé; toute autre valeur devient UnknownStatus(raw), jamais un statut par défaut.
- OrderDraft: commande avant persistance; valide les invariants financiers et l’adresse de livraison.
- Order: commande persistée (identité, date, statut); les montants ne changent plus après création.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class UnknownStatus:
    """Statut hors enum conservé tel quel (signal de qualité de données)."""
    __slots__ = ("raw",)

    def __init__(self, raw: Any):
        self.raw = "" if raw is None else str(raw)

    @property
    def value(self) -> str:
        return self.raw

    def __eq__(self, other: object) -> bool:
        return isinstance(other, UnknownStatus) and other.raw == self.raw

    def __hash__(self) -> int:
        return hash(("unknown", self.raw))

    def __repr__(self) -> str:
        return f"UnknownStatus({self.raw!r})"


StatusValue = Union[OrderStatus, UnknownStatus]

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})

ALLOWED_TRANSITIONS: Dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def parse_status(raw: Any) -> StatusValue:
    if isinstance(raw, (OrderStatus, UnknownStatus)):
        return raw
    try:
        return OrderStatus(raw)
    except ValueError:
        return UnknownStatus(raw)


def can_transition(current: StatusValue, new: StatusValue) -> bool:
    # Un statut inconnu ne permet aucune transition automatique
    if not isinstance(current, OrderStatus) or not isinstance(new, OrderStatus):
        return False
    return new in ALLOWED_TRANSITIONS[current]


class DeliveryOption(str, Enum):
    HOME_DELIVERY = "homeDelivery"
    PICKUP = "pickup"

    @classmethod
    def _missing_(cls, value):
        # Valeur historique de l’app mobile
        if value == "delivery":
            return cls.HOME_DELIVERY
        return None


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH_ON_DELIVERY = "cashOnDelivery"

    @classmethod
    def _missing_(cls, value):
        legacy = {
            "online_payment": cls.CARD,
            "cash_on_delivery": cls.CASH_ON_DELIVERY,
            "cash": cls.CASH_ON_DELIVERY,
        }
        return legacy.get(value)


class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING_COD = "pending_cod"


def to_cents(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItem(_CamelModel):
    product_id: str = Field(min_length=1)
    name: str
    unit_price: float = Field(ge=0, allow_inf_nan=False)
    quantity: int = Field(ge=1)
    image: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return to_cents(self.unit_price) * self.quantity


class DeliveryAddress(_CamelModel):
    address: str = Field(min_length=1)
    label: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    instructions: str = ""


class _OrderFields(_CamelModel):
    items: List[OrderItem]
    subtotal: float = Field(ge=0, allow_inf_nan=False)
    delivery_fee: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    total: float = Field(ge=0, allow_inf_nan=False)
    restaurant: str = ""
    delivery_option: DeliveryOption = DeliveryOption.HOME_DELIVERY
    address: Optional[DeliveryAddress] = None
    payment_method: PaymentMethod
    phone_number: Optional[str] = None
    notes: str = ""
    currency: Optional[str] = None


class OrderDraft(_OrderFields):
    # Chemin explicite de diagnostic pour une commande à 0; jamais déduit d’une saisie invalide
    allow_zero_total: bool = Field(default=False, exclude=True)

    @model_validator(mode="after")
    def check_invariants(self) -> "OrderDraft":
        if not self.items:
            raise ValueError("La commande doit contenir au moins un article")
        items_total = sum((item.line_total for item in self.items), Decimal("0.00"))
        if to_cents(self.subtotal) != items_total:
            raise ValueError(f"Sous-total incohérent: {self.subtotal} != {items_total}")
        if to_cents(self.total) != to_cents(self.subtotal) + to_cents(self.delivery_fee):
            raise ValueError(f"Total incohérent: {self.total} != {self.subtotal} + {self.delivery_fee}")
        if to_cents(self.total) == 0 and not self.allow_zero_total:
            raise ValueError("Montant total nul refusé")
        if self.delivery_option == DeliveryOption.HOME_DELIVERY and self.address is None:
            raise ValueError("Adresse de livraison requise pour la livraison à domicile")
        return self

    @classmethod
    def from_items(
        cls,
        items: List[OrderItem],
        *,
        payment_method: PaymentMethod,
        delivery_fee: float = 0.0,
        **fields: Any,
    ) -> "OrderDraft":
        """Construit un brouillon dont subtotal/total sont calculés à partir des articles."""
        subtotal = sum((item.line_total for item in items), Decimal("0.00"))
        total = subtotal + to_cents(delivery_fee)
        return cls(
            items=items,
            subtotal=float(subtotal),
            delivery_fee=float(to_cents(delivery_fee)),
            total=float(total),
            payment_method=payment_method,
            **fields,
        )


class Order(_OrderFields):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, arbitrary_types_allowed=True)

    id: str
    status: Union[OrderStatus, UnknownStatus]
    date: datetime
    user_id: Optional[str] = None
    payment_status: Optional[str] = None
    payment_intent_id: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, v: Any) -> StatusValue:
        return parse_status(v)

    @field_serializer("status")
    def _dump_status(self, v: StatusValue) -> str:
        return v.value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class StatusPresentation(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    color: str
    icon: str
    known: bool = True


class TrackingInfo(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, arbitrary_types_allowed=True)

    order_id: str
    status: Union[OrderStatus, UnknownStatus]
    presentation: StatusPresentation
    is_terminal: bool
    estimated_delivery_time: Optional[str] = None

    @field_serializer("status")
    def _dump_status(self, v: StatusValue) -> str:
        return v.value
