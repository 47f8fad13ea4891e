import re
from typing import Any, Dict, Iterable, List, Optional
from bson import ObjectId
from pymongo.database import Database
from storefront.core.errors import NotFoundError

ALL_CATEGORIES = "All"
DELETED_PRODUCT_NAME = "Deleted product"


def parse_object_id(value, label: str) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(str(value)):
        raise NotFoundError(label, str(value))
    return ObjectId(str(value))


def product_to_client(doc: dict) -> Dict[str, Any]:
    return {
        "_id": str(doc["_id"]),
        "name": doc.get("name"),
        "description": doc.get("description"),
        "price": float(doc.get("price", 0)),
        "image": doc.get("image"),
        "category": doc.get("category"),
    }


def deleted_product_placeholder(product_id) -> Dict[str, Any]:
    return {
        "_id": str(product_id),
        "name": DELETED_PRODUCT_NAME,
        "description": None,
        "price": None,
        "image": None,
        "category": None,
        "deleted": True,
    }


def list_products(db: Database, category: Optional[str] = None, search: Optional[str] = None) -> List[dict]:
    filt: Dict[str, Any] = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filt["$or"] = [{"name": pattern}, {"description": pattern}]
    if category and category != ALL_CATEGORIES:
        filt["category"] = category
    return list(db.products.find(filt))


def get_product(db: Database, product_id) -> dict:
    oid = parse_object_id(product_id, "Product")
    doc = db.products.find_one({"_id": oid})
    if not doc:
        raise NotFoundError("Product", str(product_id))
    return doc


def resolve_products(db: Database, ids: Iterable[ObjectId]) -> Dict[ObjectId, dict]:
    """Batch lookup; ids that no longer resolve are simply absent from the result."""
    wanted = list({i for i in ids})
    if not wanted:
        return {}
    return {doc["_id"]: doc for doc in db.products.find({"_id": {"$in": wanted}})}


def resolved_product(products: Dict[ObjectId, dict], product_id) -> Dict[str, Any]:
    doc = products.get(product_id)
    if doc is None:
        return deleted_product_placeholder(product_id)
    return product_to_client(doc)
