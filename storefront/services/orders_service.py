import logging
from typing import Dict, List, Optional
from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database
from storefront.core.errors import NotFoundError, ValidationError
from storefront.services.catalog import parse_object_id, resolve_products, resolved_product

logger = logging.getLogger(__name__)

STATUS_PENDING = "Pending"
STATUS_SHIPPED = "Shipped"
STATUS_DELIVERED = "Delivered"
ORDER_STATUSES = (STATUS_PENDING, STATUS_SHIPPED, STATUS_DELIVERED)


def address_to_client(addr: dict) -> dict:
    return {
        "name": addr.get("name"),
        "email": addr.get("email"),
        "address": addr.get("address"),
        "city": addr.get("city"),
        "postalCode": addr.get("postal_code"),
        "country": addr.get("country"),
    }


def _shape(order: dict, products: Dict[ObjectId, dict], user_email: Optional[str] = None) -> dict:
    shaped = {
        "_id": str(order["_id"]),
        "user": str(order["user"]),
        "items": [
            {
                "product": resolved_product(products, it["product"]),
                "quantity": it["quantity"],
                "priceAtPurchase": it["price_at_purchase"],
            }
            for it in order.get("items", [])
        ],
        "shippingAddress": address_to_client(order.get("shipping_address") or {}),
        "totalAmount": order["total_amount"],
        "status": order["status"],
        "createdAt": order["created_at"],
    }
    if user_email is not None:
        shaped["userEmail"] = user_email
    return shaped


def _shape_many(db: Database, orders: List[dict], with_user_email: bool = False) -> List[dict]:
    products = resolve_products(db, [it["product"] for o in orders for it in o.get("items", [])])
    emails: Dict[ObjectId, str] = {}
    if with_user_email:
        owners = list({o["user"] for o in orders})
        emails = {u["_id"]: u["email"] for u in db.users.find({"_id": {"$in": owners}}, {"email": 1})}
    return [
        _shape(o, products, emails.get(o["user"], "deleted user") if with_user_email else None)
        for o in orders
    ]


def order_to_client(db: Database, order: dict) -> dict:
    return _shape_many(db, [order])[0]


def get_order_doc(db: Database, order_id) -> dict:
    oid = parse_object_id(order_id, "Order")
    order = db.orders.find_one({"_id": oid})
    if not order:
        raise NotFoundError("Order", str(order_id))
    return order


def list_orders_for_user(db: Database, user_id: ObjectId) -> List[dict]:
    orders = list(db.orders.find({"user": user_id}).sort("created_at", DESCENDING))
    return _shape_many(db, orders)


def get_order_for_user(db: Database, user_id: ObjectId, order_id) -> dict:
    order = get_order_doc(db, order_id)
    if order["user"] != user_id:
        # other users' orders are indistinguishable from missing ones
        raise NotFoundError("Order", str(order_id))
    return order_to_client(db, order)


def list_all_orders(db: Database) -> List[dict]:
    orders = list(db.orders.find().sort("created_at", DESCENDING))
    return _shape_many(db, orders, with_user_email=True)


def update_order_status(db: Database, order_id, status: str) -> dict:
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}.")
    order = get_order_doc(db, order_id)
    db.orders.update_one({"_id": order["_id"]}, {"$set": {"status": status}})
    order["status"] = status
    logger.info("Order %s status set to %s", order["_id"], status)
    return order_to_client(db, order)
