"""Tests for checkout: cart snapshot into an order."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from storefront.core.errors import ConflictError, InvalidStateError
from storefront.services import cart_service, checkout_service


@pytest.fixture
def address():
    return {
        "name": "X",
        "email": "x@y.com",
        "address": "1 St",
        "city": "C",
        "postal_code": "00000",
        "country": "Z",
    }


@pytest.fixture
def filled_cart(db, shopper, make_product):
    a = make_product(name="A", price=10.0)
    b = make_product(name="B", price=5.0)
    cart_service.add_item(db, shopper["_id"], str(a["_id"]), 2)
    cart_service.add_item(db, shopper["_id"], str(b["_id"]), 1)
    return a, b


class TestCheckout:
    def test_total_items_and_empty_cart(self, db, shopper, filled_cart, address):
        order, replayed = checkout_service.checkout(db, shopper["_id"], address)

        assert replayed is False
        assert order["totalAmount"] == 25.00
        assert len(order["items"]) == 2
        assert order["status"] == "Pending"
        assert order["shippingAddress"]["postalCode"] == "00000"
        assert cart_service.get_cart(db, shopper["_id"])["items"] == []
        assert db.orders.count_documents({}) == 1

    def test_cart_is_emptied_not_deleted(self, db, shopper, filled_cart, address):
        checkout_service.checkout(db, shopper["_id"], address)
        cart = db.carts.find_one({"user": shopper["_id"]})
        assert cart is not None
        assert cart["items"] == []

    def test_line_prices_are_snapshotted(self, db, shopper, filled_cart, address):
        a, _ = filled_cart
        order, _ = checkout_service.checkout(db, shopper["_id"], address)
        db.products.update_one({"_id": a["_id"]}, {"$set": {"price": 99.0}})

        stored = db.orders.find_one({"_id": ObjectId(order["_id"])})
        assert stored["total_amount"] == 25.00
        prices = sorted(line["price_at_purchase"] for line in stored["items"])
        assert prices == [5.0, 10.0]

    def test_uses_catalog_price_at_checkout_time(self, db, shopper, filled_cart, address):
        a, _ = filled_cart
        db.products.update_one({"_id": a["_id"]}, {"$set": {"price": 12.5}})
        order, _ = checkout_service.checkout(db, shopper["_id"], address)
        assert order["totalAmount"] == 30.00

    def test_total_is_rounded_to_cents(self, db, shopper, make_product, address):
        p = make_product(price=0.1)
        cart_service.add_item(db, shopper["_id"], str(p["_id"]), 3)
        order, _ = checkout_service.checkout(db, shopper["_id"], address)
        assert order["totalAmount"] == 0.3

    def test_missing_cart_fails(self, db, shopper, address):
        with pytest.raises(InvalidStateError):
            checkout_service.checkout(db, shopper["_id"], address)
        assert db.orders.count_documents({}) == 0

    def test_empty_cart_fails(self, db, shopper, address):
        cart_service.get_cart(db, shopper["_id"])
        with pytest.raises(InvalidStateError, match="Cart is empty"):
            checkout_service.checkout(db, shopper["_id"], address)
        assert db.orders.count_documents({}) == 0

    def test_deleted_product_blocks_checkout(self, db, shopper, filled_cart, address):
        a, _ = filled_cart
        db.products.delete_one({"_id": a["_id"]})
        with pytest.raises(InvalidStateError):
            checkout_service.checkout(db, shopper["_id"], address)
        assert db.orders.count_documents({}) == 0
        assert len(db.carts.find_one({"user": shopper["_id"]})["items"]) == 2

    def test_items_added_during_checkout_survive(self, db, shopper, filled_cart, address, make_product, monkeypatch):
        late = make_product(name="Late", price=1.0)
        original_release = cart_service.release_items

        def add_then_release(database, user_id, lines):
            cart_service.add_item(database, user_id, str(late["_id"]), 1)
            return original_release(database, user_id, lines)

        monkeypatch.setattr(cart_service, "release_items", add_then_release)
        checkout_service.checkout(db, shopper["_id"], address)

        cart = cart_service.get_cart(db, shopper["_id"])
        assert [(line["product"]["name"], line["quantity"]) for line in cart["items"]] == [("Late", 1)]


class TestIdempotentCheckout:
    def test_same_key_returns_same_order(self, db, shopper, filled_cart, address):
        first, replayed_first = checkout_service.checkout(db, shopper["_id"], address, idempotency_key="abc")
        second, replayed_second = checkout_service.checkout(db, shopper["_id"], address, idempotency_key="abc")

        assert replayed_first is False
        assert replayed_second is True
        assert first["_id"] == second["_id"]
        assert db.orders.count_documents({}) == 1

    def test_different_keys_are_independent(self, db, shopper, filled_cart, address, make_product):
        checkout_service.checkout(db, shopper["_id"], address, idempotency_key="one")
        p = make_product(name="C", price=3.0)
        cart_service.add_item(db, shopper["_id"], str(p["_id"]), 1)
        order, replayed = checkout_service.checkout(db, shopper["_id"], address, idempotency_key="two")
        assert replayed is False
        assert order["totalAmount"] == 3.0
        assert db.orders.count_documents({}) == 2

    def test_failed_checkout_releases_key(self, db, shopper, address, make_product):
        with pytest.raises(InvalidStateError):
            checkout_service.checkout(db, shopper["_id"], address, idempotency_key="retry-me")

        p = make_product(price=4.0)
        cart_service.add_item(db, shopper["_id"], str(p["_id"]), 1)
        order, replayed = checkout_service.checkout(db, shopper["_id"], address, idempotency_key="retry-me")
        assert replayed is False
        assert order["totalAmount"] == 4.0

    def test_key_in_flight_conflicts(self, db, shopper, filled_cart, address):
        db.checkout_requests.insert_one(
            {"_id": f"{shopper['_id']}:busy", "order": None, "released": False, "created_at": datetime.now(timezone.utc)}
        )
        with pytest.raises(ConflictError):
            checkout_service.checkout(db, shopper["_id"], address, idempotency_key="busy")
        assert db.orders.count_documents({}) == 0

    def test_stale_claim_without_order_is_taken_over(self, db, shopper, filled_cart, address):
        abandoned = datetime.now(timezone.utc) - timedelta(hours=1)
        db.checkout_requests.insert_one(
            {"_id": f"{shopper['_id']}:crashed", "order": None, "released": False, "created_at": abandoned}
        )
        order, replayed = checkout_service.checkout(db, shopper["_id"], address, idempotency_key="crashed")

        assert replayed is False
        assert order["totalAmount"] == 25.00
        assert db.orders.count_documents({}) == 1
        claim = db.checkout_requests.find_one({"_id": f"{shopper['_id']}:crashed"})
        assert str(claim["order"]) == order["_id"]
        assert claim["released"] is True
        assert cart_service.get_cart(db, shopper["_id"])["items"] == []

    def test_replay_finishes_failed_cart_release(self, db, shopper, filled_cart, address, monkeypatch):
        original_release = cart_service.release_items
        calls = []

        def fail_first(database, user_id, lines):
            calls.append(lines)
            if len(calls) == 1:
                raise ConflictError("Cart is busy, please retry.")
            return original_release(database, user_id, lines)

        monkeypatch.setattr(cart_service, "release_items", fail_first)
        with pytest.raises(ConflictError):
            checkout_service.checkout(db, shopper["_id"], address, idempotency_key="flaky")
        assert len(cart_service.get_cart(db, shopper["_id"])["items"]) == 2

        order, replayed = checkout_service.checkout(db, shopper["_id"], address, idempotency_key="flaky")
        assert replayed is True
        assert db.orders.count_documents({}) == 1
        assert cart_service.get_cart(db, shopper["_id"])["items"] == []

        # a further replay must not subtract the lines again
        checkout_service.checkout(db, shopper["_id"], address, idempotency_key="flaky")
        assert len(calls) == 2

    def test_requests_expire_via_ttl_index(self, db):
        indexes = db.checkout_requests.index_information()
        ttl = [info for info in indexes.values() if "expireAfterSeconds" in info]
        assert len(ttl) == 1
        assert ttl[0]["key"] == [("created_at", 1)]


class TestCheckoutApi:
    def test_scenario(self, client, auth_headers, make_product, shipping_address):
        a = make_product(name="A", price=10.0)
        b = make_product(name="B", price=5.0)
        client.post("/api/cart", json={"productId": str(a["_id"]), "quantity": 2}, headers=auth_headers)
        client.post("/api/cart", json={"productId": str(b["_id"]), "quantity": 1}, headers=auth_headers)

        response = client.post("/api/checkout", json={"shippingAddress": shipping_address}, headers=auth_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["order"]["totalAmount"] == 25.00
        assert len(data["order"]["items"]) == 2
        assert data["orderId"] == data["order"]["_id"]

        assert client.get("/api/cart", headers=auth_headers).json()["items"] == []

    def test_empty_cart(self, client, auth_headers, shipping_address):
        response = client.post("/api/checkout", json={"shippingAddress": shipping_address}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"detail": "Cart is empty.", "kind": "InvalidState"}

    def test_incomplete_address(self, client, auth_headers, shipping_address):
        del shipping_address["city"]
        response = client.post("/api/checkout", json={"shippingAddress": shipping_address}, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["kind"] == "Validation"
        assert "city" in response.json()["detail"]

    def test_idempotency_header(self, client, auth_headers, make_product, shipping_address):
        p = make_product(price=10.0)
        client.post("/api/cart", json={"productId": str(p["_id"])}, headers=auth_headers)
        headers = {**auth_headers, "Idempotency-Key": "k-1"}

        first = client.post("/api/checkout", json={"shippingAddress": shipping_address}, headers=headers)
        second = client.post("/api/checkout", json={"shippingAddress": shipping_address}, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["replayed"] is True
        assert first.json()["orderId"] == second.json()["orderId"]
