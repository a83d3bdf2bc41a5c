"""Livraison: serveur de paiement in-app (Stripe), commandes (Supabase) et orchestration du checkout."""

__version__ = "1.0.0"
