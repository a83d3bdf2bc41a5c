"""
Module 'commandes': modèles, présentation des statuts, persistance Supabase et cas d’usage.
"""

from .models import (
    OrderStatus,
    UnknownStatus,
    DeliveryOption,
    PaymentMethod,
    PaymentStatus,
    OrderItem,
    DeliveryAddress,
    OrderDraft,
    Order,
    StatusPresentation,
    TrackingInfo,
    parse_status,
    can_transition,
)
from .status import STATUS_PRESENTATIONS, UNKNOWN_PRESENTATION, status_presentation, status_label

__all__ = [
    "OrderStatus",
    "UnknownStatus",
    "DeliveryOption",
    "PaymentMethod",
    "PaymentStatus",
    "OrderItem",
    "DeliveryAddress",
    "OrderDraft",
    "Order",
    "StatusPresentation",
    "TrackingInfo",
    "parse_status",
    "can_transition",
    "STATUS_PRESENTATIONS",
    "UNKNOWN_PRESENTATION",
    "status_presentation",
    "status_label",
]
