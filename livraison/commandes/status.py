"""
Présentation des statuts de commande (lookup pur).
Toute valeur hors enum reçoit la présentation « Inconnu » (gris, alert-circle) et un warning
dans les logs, au lieu d’être affichée comme un statut normal.
"""
import logging
from typing import Any, Dict

from .models import OrderStatus, StatusPresentation, UnknownStatus, parse_status

logger = logging.getLogger(__name__)

STATUS_PRESENTATIONS: Dict[OrderStatus, StatusPresentation] = {
    OrderStatus.PENDING: StatusPresentation(label="En attente", color="#FBBF24", icon="clock"),
    OrderStatus.PROCESSING: StatusPresentation(label="En cours", color="#3B82F6", icon="loader"),
    OrderStatus.DELIVERED: StatusPresentation(label="Livrée", color="#10B981", icon="check-circle"),
    OrderStatus.CANCELLED: StatusPresentation(label="Annulée", color="#EF4444", icon="x-circle"),
}

UNKNOWN_PRESENTATION = StatusPresentation(label="Inconnu", color="#9CA3AF", icon="alert-circle", known=False)


def status_presentation(status: Any) -> StatusPresentation:
    value = parse_status(status)
    if isinstance(value, UnknownStatus):
        logger.warning("Unknown order status: %r", value.raw)
        return UNKNOWN_PRESENTATION
    return STATUS_PRESENTATIONS[value]


def status_label(status: Any) -> str:
    return status_presentation(status).label
