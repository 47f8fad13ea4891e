import logging
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from storefront.core.config import settings

logger = logging.getLogger(__name__)

_client: MongoClient | None = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        if not settings.MONGO_URI:
            raise RuntimeError("MONGO_URI not configured. See .env")
        _client = MongoClient(settings.MONGO_URI, serverSelectionTimeoutMS=settings.MONGO_TIMEOUT_MS)
    return _client


def get_db() -> Database:
    """FastAPI dependency: the storefront database."""
    return get_client()[settings.MONGO_DB_NAME]


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None


def ensure_indexes(db: Database):
    db.users.create_index([("email", ASCENDING)], unique=True)
    # one cart per user
    db.carts.create_index([("user", ASCENDING)], unique=True)
    db.orders.create_index([("user", ASCENDING), ("created_at", DESCENDING)])
    db.orders.create_index([("created_at", DESCENDING)])
    db.products.create_index([("category", ASCENDING)])
    db.checkout_requests.create_index(
        [("created_at", ASCENDING)], expireAfterSeconds=settings.CHECKOUT_REQUEST_TTL_SECONDS
    )
    logger.info("MongoDB indexes ensured on %s", db.name)
