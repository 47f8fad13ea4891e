import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List
from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from storefront.core.config import settings
from storefront.core.errors import ConflictError, NotFoundError, ValidationError
from storefront.services.catalog import get_product, parse_object_id, resolve_products, resolved_product

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def _find_cart(db: Database, user_id: ObjectId):
    return db.carts.find_one({"user": user_id})


def _get_or_create_cart(db: Database, user_id: ObjectId) -> dict:
    cart = _find_cart(db, user_id)
    if cart:
        return cart
    now = _now()
    cart = {"user": user_id, "items": [], "version": 0, "created_at": now, "updated_at": now}
    try:
        db.carts.insert_one(cart)
    except DuplicateKeyError:
        # created by a concurrent request
        return _find_cart(db, user_id)
    return cart


def _mutate_cart(db: Database, cart: dict, mutate: Callable[[List[dict]], List[dict]]) -> dict:
    """Apply ``mutate`` to the cart items with a compare-and-swap on ``version``.

    ``mutate`` receives a copy of the current items and returns the new list;
    it may raise to abort. On a lost race the cart is re-read and the mutation
    re-applied, up to ``CART_UPDATE_RETRIES`` times.
    """
    for attempt in range(settings.CART_UPDATE_RETRIES):
        items = mutate([dict(i) for i in cart.get("items", [])])
        version = cart.get("version", 0)
        res = db.carts.update_one(
            {"_id": cart["_id"], "version": version},
            {"$set": {"items": items, "updated_at": _now(), "version": version + 1}},
        )
        if res.matched_count:
            cart["items"] = items
            cart["version"] = version + 1
            return cart
        logger.warning("Cart %s changed during update (attempt %d), retrying", cart["_id"], attempt + 1)
        cart = db.carts.find_one({"_id": cart["_id"]})
        if cart is None:
            raise NotFoundError("Cart")
    raise ConflictError("Cart was modified concurrently. Please retry.")


def cart_to_client(db: Database, cart: dict) -> dict:
    items = cart.get("items", [])
    products = resolve_products(db, [i["product"] for i in items])
    lines = []
    subtotal = Decimal(0)
    for it in items:
        product = resolved_product(products, it["product"])
        if product["price"] is not None:
            subtotal += Decimal(str(product["price"])) * it["quantity"]
        lines.append({"product": product, "quantity": it["quantity"]})
    return {
        "_id": str(cart["_id"]),
        "user": str(cart["user"]),
        "items": lines,
        "subtotal": float(round(subtotal, 2)),
        "updatedAt": cart.get("updated_at"),
    }


def get_cart(db: Database, user_id: ObjectId) -> dict:
    return cart_to_client(db, _get_or_create_cart(db, user_id))


def add_item(db: Database, user_id: ObjectId, product_id, quantity: int = 1) -> dict:
    if quantity is None or quantity < 1:
        raise ValidationError("Quantity must be at least 1.")
    product = get_product(db, product_id)
    pid = product["_id"]

    def merge(items):
        for it in items:
            if it["product"] == pid:
                it["quantity"] += quantity
                return items
        items.append({"product": pid, "quantity": quantity})
        return items

    cart = _mutate_cart(db, _get_or_create_cart(db, user_id), merge)
    return cart_to_client(db, cart)


def remove_item(db: Database, user_id: ObjectId, product_id) -> dict:
    # a deleted product can still be removed, so only the id format is checked
    pid = parse_object_id(product_id, "Cart item")
    cart = _find_cart(db, user_id)
    if not cart:
        raise NotFoundError("Cart")

    def decrement(items):
        for idx, it in enumerate(items):
            if it["product"] == pid:
                if it["quantity"] > 1:
                    it["quantity"] -= 1
                else:
                    del items[idx]
                return items
        raise NotFoundError("Cart item", str(pid))

    cart = _mutate_cart(db, cart, decrement)
    return cart_to_client(db, cart)


def release_items(db: Database, user_id: ObjectId, lines: List[dict]) -> dict:
    """Subtract checked-out quantities; lines that reach zero are dropped."""
    checked_out: Dict[ObjectId, int] = {}
    for line in lines:
        checked_out[line["product"]] = checked_out.get(line["product"], 0) + line["quantity"]

    def subtract(items):
        remaining = []
        for it in items:
            qty = it["quantity"] - checked_out.get(it["product"], 0)
            if qty >= 1:
                remaining.append({"product": it["product"], "quantity": qty})
        return remaining

    return _mutate_cart(db, _get_or_create_cart(db, user_id), subtract)
