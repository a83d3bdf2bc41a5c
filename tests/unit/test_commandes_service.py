import pytest
from fastapi import HTTPException

from livraison import config
from livraison.commandes import service as commandes_service
from livraison.commandes.models import (
    DeliveryAddress,
    OrderDraft,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    UnknownStatus,
)
from livraison.payments import service as payments_service

def _draft(payment_method=PaymentMethod.CASH_ON_DELIVERY, **fields):
    items = [OrderItem(product_id="p1", name="Tajine", unit_price=50.0, quantity=2)]
    return OrderDraft.from_items(
        items,
        payment_method=payment_method,
        delivery_fee=10,
        address=DeliveryAddress(address="12 rue des Oliviers, Rabat"),
        restaurant="Dar Tajine",
        **fields,
    )

def _paid_intent(fake_stripe, amount=110.0, status="succeeded"):
    result = payments_service.create_payment_intent(amount, user_id="test-user")
    intent_id = result.payment_intent.split("_secret_")[0]
    fake_stripe.confirm(intent_id, status)
    return intent_id

def test_create_cash_order(orders_repo):
    order_id = commandes_service.create_order(_draft(), "test-user")

    row = orders_repo.orders[order_id]
    assert row["status"] == "pending"
    assert row["payment_status"] == "pending_cod"
    assert row["payment_intent_id"] is None
    assert row["currency"] == "MAD"
    assert row["total"] == 110.0
    assert row["items"][0]["product_id"] == "p1"
    assert row["date"].endswith(("Z", "+00:00"))

def test_create_card_order_verifies_intent(orders_repo, fake_stripe):
    intent_id = _paid_intent(fake_stripe)
    order_id = commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)

    row = orders_repo.orders[order_id]
    assert row["payment_status"] == "paid"
    assert row["payment_intent_id"] == intent_id
    assert fake_stripe.count("PaymentIntent.retrieve") == 1

def test_card_order_is_idempotent_per_intent(orders_repo, fake_stripe):
    intent_id = _paid_intent(fake_stripe)
    first = commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)
    second = commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)
    assert first == second
    assert len(orders_repo.orders) == 1

def test_concurrent_retry_returns_order_created_meanwhile(orders_repo, fake_stripe, monkeypatch):
    intent_id = _paid_intent(fake_stripe)
    first = commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)
    # La lecture du retry précède l’insertion de la première requête
    lookups = []
    def _fetch(payment_intent_id):
        lookups.append(payment_intent_id)
        return None if len(lookups) == 1 else orders_repo.fetch_order_by_payment_intent(payment_intent_id)
    monkeypatch.setattr("livraison.commandes.repository.fetch_order_by_payment_intent", _fetch)

    second = commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)

    assert second == first
    assert len(orders_repo.orders) == 1
    assert lookups == [intent_id, intent_id]

def test_card_order_of_other_user_is_forbidden(orders_repo, fake_stripe):
    intent_id = _paid_intent(fake_stripe)
    commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.create_order(_draft(PaymentMethod.CARD), "someone-else", intent_id)
    assert excinfo.value.status_code == 403

def test_card_order_rejects_intent_paid_by_another_user(orders_repo, fake_stripe):
    result = payments_service.create_payment_intent(110.0, user_id="alice")
    intent_id = result.payment_intent.split("_secret_")[0]
    fake_stripe.confirm(intent_id)
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.create_order(_draft(PaymentMethod.CARD), "mallory", intent_id)
    assert excinfo.value.status_code == 403
    assert orders_repo.orders == {}

def test_card_order_accepts_guest_intent(orders_repo, fake_stripe):
    result = payments_service.create_payment_intent(110.0)
    intent_id = result.payment_intent.split("_secret_")[0]
    fake_stripe.confirm(intent_id)
    order_id = commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)
    assert orders_repo.orders[order_id]["payment_intent_id"] == intent_id

def test_card_order_requires_intent(orders_repo):
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user")
    assert excinfo.value.status_code == 400
    assert orders_repo.orders == {}

def test_card_order_rejects_unconfirmed_intent(orders_repo, fake_stripe):
    intent_id = _paid_intent(fake_stripe, status="requires_payment_method")
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)
    assert excinfo.value.status_code == 400
    assert "non confirmé" in excinfo.value.detail

def test_card_order_accepts_processing_intent(orders_repo, fake_stripe):
    intent_id = _paid_intent(fake_stripe, status="processing")
    assert commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)

def test_card_order_rejects_amount_mismatch(orders_repo, fake_stripe):
    intent_id = _paid_intent(fake_stripe, amount=50.0)
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", intent_id)
    assert excinfo.value.status_code == 400
    assert orders_repo.orders == {}

def test_card_order_unknown_intent_is_bad_gateway(orders_repo, fake_stripe):
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", "pi_missing")
    assert excinfo.value.status_code == 502

def test_card_order_without_stripe_config(orders_repo, fake_stripe, monkeypatch):
    monkeypatch.setattr(config, "STRIPE_SECRET_KEY", "")
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.create_order(_draft(PaymentMethod.CARD), "test-user", "pi_1")
    assert excinfo.value.status_code == 500
    assert fake_stripe.count() == 0

def test_foreign_currency_rejected(orders_repo):
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.create_order(_draft(currency="EUR"), "test-user")
    assert excinfo.value.status_code == 400

def test_zero_total_requires_diagnostic_switch(orders_repo, monkeypatch):
    free = OrderDraft(
        items=[OrderItem(product_id="p", name="Eau", unit_price=0, quantity=1)],
        subtotal=0,
        total=0,
        payment_method="cashOnDelivery",
        delivery_option="pickup",
        allow_zero_total=True,
    )
    with pytest.raises(HTTPException):
        commandes_service.create_order(free, "test-user")
    monkeypatch.setattr(config, "ALLOW_DIAGNOSTIC_AMOUNT", True)
    assert commandes_service.create_order(free, "test-user")

def test_insert_failure_is_500(orders_repo):
    orders_repo.fail_insert = True
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.create_order(_draft(), "test-user")
    assert excinfo.value.status_code == 500
    assert excinfo.value.detail == "Impossible de créer la commande"

def test_get_order_details_is_user_scoped(orders_repo):
    orders_repo.seed(id="o1")
    assert commandes_service.get_order_details("o1", "test-user").id == "o1"
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.get_order_details("o1", "intruder")
    assert excinfo.value.status_code == 404

def test_list_orders_filters(orders_repo):
    orders_repo.seed(id="a", status="pending", date="2024-06-03T10:00:00+00:00")
    orders_repo.seed(id="b", status="delivered", date="2024-06-02T10:00:00+00:00")
    orders_repo.seed(id="c", status="cancelled", date="2024-06-01T10:00:00+00:00")
    orders_repo.seed(id="d", status="processing", date="2024-06-04T10:00:00+00:00")

    assert [o.id for o in commandes_service.list_orders("test-user")] == ["d", "a", "b", "c"]
    assert [o.id for o in commandes_service.list_orders("test-user", "ongoing")] == ["d", "a"]
    assert [o.id for o in commandes_service.list_orders("test-user", "completed")] == ["b", "c"]
    with pytest.raises(HTTPException):
        commandes_service.list_orders("test-user", "archived")

def test_list_orders_keeps_unknown_status_out_of_filters(orders_repo):
    orders_repo.seed(id="x", status="shipped")
    orders = commandes_service.list_orders("test-user")
    assert orders[0].status == UnknownStatus("shipped")
    assert commandes_service.list_orders("test-user", "ongoing") == []
    assert commandes_service.list_orders("test-user", "completed") == []

def test_track_order(orders_repo):
    orders_repo.seed(id="o1", status="processing")
    info = commandes_service.track_order("o1", "test-user")
    assert info.status == OrderStatus.PROCESSING
    assert info.presentation.label == "En cours"
    assert info.estimated_delivery_time == "30-45 minutes"
    assert info.is_terminal is False
    # Lecture seule
    assert orders_repo.orders["o1"]["status"] == "processing"

def test_track_delivered_order_has_no_eta(orders_repo):
    orders_repo.seed(id="o1", status="delivered")
    info = commandes_service.track_order("o1", "test-user")
    assert info.is_terminal is True
    assert info.estimated_delivery_time is None

def test_cancel_pending_order(orders_repo):
    orders_repo.seed(id="o1", status="pending")
    order = commandes_service.cancel_order("o1", "test-user")
    assert order.status == OrderStatus.CANCELLED
    assert orders_repo.orders["o1"]["status"] == "cancelled"

@pytest.mark.parametrize("status", ["processing", "delivered", "cancelled"])
def test_cancel_only_from_pending(orders_repo, status):
    orders_repo.seed(id="o1", status=status)
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.cancel_order("o1", "test-user")
    assert excinfo.value.status_code == 409
    assert orders_repo.orders["o1"]["status"] == status

def test_update_status_follows_transition_table(orders_repo):
    orders_repo.seed(id="o1", status="pending")
    assert commandes_service.update_order_status("o1", "processing").status == OrderStatus.PROCESSING
    assert commandes_service.update_order_status("o1", "delivered").status == OrderStatus.DELIVERED
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.update_order_status("o1", "cancelled")
    assert excinfo.value.status_code == 409
    # Les montants ne bougent jamais
    assert orders_repo.orders["o1"]["total"] == 110.0

def test_update_status_rejects_skips_and_unknown_values(orders_repo):
    orders_repo.seed(id="o1", status="pending")
    with pytest.raises(HTTPException) as skip:
        commandes_service.update_order_status("o1", "delivered")
    assert skip.value.status_code == 409
    with pytest.raises(HTTPException) as unknown:
        commandes_service.update_order_status("o1", "shipped")
    assert unknown.value.status_code == 400

def test_update_status_conflict_when_row_changed(orders_repo, monkeypatch):
    orders_repo.seed(id="o1", status="pending")
    monkeypatch.setattr("livraison.commandes.repository.update_order_status", lambda *a, **kw: False)
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.update_order_status("o1", "processing")
    assert excinfo.value.status_code == 409

def test_reorder_items_copies_to_cart(orders_repo):
    orders_repo.seed(id="o1", status="delivered")
    assert commandes_service.reorder_items("o1", "test-user") == 1
    assert orders_repo.cart == [
        {"user_id": "test-user", "product_id": "p1", "name": "Tajine", "unit_price": 50.0, "quantity": 2, "image": None}
    ]

def test_reorder_missing_order(orders_repo):
    with pytest.raises(HTTPException) as excinfo:
        commandes_service.reorder_items("nope", "test-user")
    assert excinfo.value.status_code == 404
