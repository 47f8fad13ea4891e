import logging
from datetime import datetime, timezone
from pymongo.database import Database
from storefront.core.errors import NotFoundError, ValidationError
from storefront.services.catalog import get_product, parse_object_id

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ("name", "description", "price", "image", "category")


def _check_price(fields: dict):
    if "price" in fields and (fields["price"] is None or fields["price"] < 0):
        raise ValidationError("Price must be a non-negative number.")


def create_product(db: Database, fields: dict) -> dict:
    missing = [f for f in PRODUCT_FIELDS if fields.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}.")
    _check_price(fields)
    now = datetime.now(timezone.utc)
    doc = {f: fields[f] for f in PRODUCT_FIELDS}
    doc["price"] = float(doc["price"])
    doc.update({"created_at": now, "updated_at": now})
    db.products.insert_one(doc)
    logger.info("Product %s created: %s", doc["_id"], doc["name"])
    return doc


def update_product(db: Database, product_id, fields: dict) -> dict:
    changes = {k: v for k, v in fields.items() if k in PRODUCT_FIELDS}
    for k, v in changes.items():
        if v is None:
            raise ValidationError(f"Field '{k}' cannot be null.")
    _check_price(changes)
    if not changes:
        return get_product(db, product_id)
    if "price" in changes:
        changes["price"] = float(changes["price"])
    oid = parse_object_id(product_id, "Product")
    changes["updated_at"] = datetime.now(timezone.utc)
    res = db.products.update_one({"_id": oid}, {"$set": changes})
    if not res.matched_count:
        raise NotFoundError("Product", str(product_id))
    logger.info("Product %s updated: %s", oid, ", ".join(sorted(changes)))
    return db.products.find_one({"_id": oid})


def delete_product(db: Database, product_id):
    oid = parse_object_id(product_id, "Product")
    res = db.products.delete_one({"_id": oid})
    if not res.deleted_count:
        raise NotFoundError("Product", str(product_id))
    logger.info("Product %s deleted", oid)
