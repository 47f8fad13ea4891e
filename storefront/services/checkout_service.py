import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple
from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from storefront.core.config import settings
from storefront.core.errors import ConflictError, InvalidStateError
from storefront.services import cart_service
from storefront.services.catalog import resolve_products
from storefront.services.orders_service import STATUS_PENDING, get_order_doc, order_to_client

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _claim_id(user_id: ObjectId, idempotency_key: str) -> str:
    return f"{user_id}:{idempotency_key}"


def _is_stale(claim: dict) -> bool:
    created = claim.get("created_at")
    if created is None:
        return True
    if created.tzinfo is None:
        # pymongo hands back naive UTC datetimes
        created = created.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) - created > timedelta(seconds=settings.CHECKOUT_CLAIM_STALE_SECONDS)


def _claim_request(db: Database, user_id: ObjectId, idempotency_key: str) -> Optional[dict]:
    """Claim the idempotency key; returns the existing claim if another request holds it.

    An unfinished claim older than ``CHECKOUT_CLAIM_STALE_SECONDS`` belongs to a
    request that died mid-checkout and is taken over.
    """
    claim_id = _claim_id(user_id, idempotency_key)
    try:
        db.checkout_requests.insert_one({
            "_id": claim_id,
            "order": None,
            "released": False,
            "created_at": datetime.now(timezone.utc),
        })
        return None
    except DuplicateKeyError:
        claim = db.checkout_requests.find_one({"_id": claim_id})
    if claim is None:
        # expired between the insert and the read
        return _claim_request(db, user_id, idempotency_key)
    if claim.get("order") is None and _is_stale(claim):
        res = db.checkout_requests.update_one(
            {"_id": claim_id, "order": None, "created_at": claim.get("created_at")},
            {"$set": {"created_at": datetime.now(timezone.utc), "released": False}},
        )
        if res.matched_count:
            logger.warning("Took over stale checkout claim %s", claim_id)
            return None
        claim = db.checkout_requests.find_one({"_id": claim_id}) or claim
    return claim


def _release_once(db: Database, claim_id: str, user_id: ObjectId, lines: list):
    """Release the order lines from the cart at most once per claim."""
    res = db.checkout_requests.update_one({"_id": claim_id, "released": False}, {"$set": {"released": True}})
    if not res.matched_count:
        return
    try:
        cart_service.release_items(db, user_id, lines)
    except Exception:
        db.checkout_requests.update_one({"_id": claim_id}, {"$set": {"released": False}})
        raise


def _place_order(db: Database, user_id: ObjectId, shipping_address: dict) -> Tuple[dict, list]:
    cart = db.carts.find_one({"user": user_id})
    items = (cart or {}).get("items") or []
    if not items:
        raise InvalidStateError("Cart is empty.")

    products = resolve_products(db, [i["product"] for i in items])
    lines = []
    total = Decimal(0)
    for it in items:
        prod = products.get(it["product"])
        if prod is None:
            raise InvalidStateError(f"Product {it['product']} is no longer available. Remove it from the cart.")
        price = Decimal(str(prod.get("price", 0)))
        qty = int(it["quantity"])
        total += price * qty
        lines.append({"product": it["product"], "quantity": qty, "price_at_purchase": float(price)})

    order = {
        "user": user_id,
        "items": lines,
        "shipping_address": shipping_address,
        "total_amount": float(total.quantize(CENTS, rounding=ROUND_HALF_UP)),
        "status": STATUS_PENDING,
        "created_at": datetime.now(timezone.utc),
    }
    db.orders.insert_one(order)
    return order, lines


def checkout(db: Database, user_id: ObjectId, shipping_address: dict, idempotency_key: Optional[str] = None) -> Tuple[dict, bool]:
    """
    Snapshot the user's cart into a Pending order and release it from the cart.

    Returns ``(order, replayed)``. ``replayed`` is True when ``idempotency_key``
    was already used for a checkout that placed an order; the earlier order is
    returned and, if its cart release never completed, the release is finished.
    """
    claim_id = _claim_id(user_id, idempotency_key) if idempotency_key else None
    if claim_id:
        claim = _claim_request(db, user_id, idempotency_key)
        if claim is not None:
            if not claim.get("order"):
                raise ConflictError("A checkout with this idempotency key is already in progress.")
            order = get_order_doc(db, claim["order"])
            if not claim.get("released"):
                logger.info("Finishing cart release for order %s", order["_id"])
                _release_once(db, claim_id, user_id, order["items"])
            logger.info("Checkout replay for user %s with key %s", user_id, idempotency_key)
            return order_to_client(db, order), True

    try:
        order, lines = _place_order(db, user_id, shipping_address)
    except Exception:
        if claim_id:
            db.checkout_requests.delete_one({"_id": claim_id})
        raise

    logger.info("Order %s placed by user %s, total %.2f", order["_id"], user_id, order["total_amount"])
    if claim_id:
        db.checkout_requests.update_one({"_id": claim_id}, {"$set": {"order": order["_id"]}})
        _release_once(db, claim_id, user_id, lines)
    else:
        cart_service.release_items(db, user_id, lines)
    return order_to_client(db, order), False
