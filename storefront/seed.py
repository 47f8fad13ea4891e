import logging
from datetime import datetime, timezone
from pymongo.database import Database

logger = logging.getLogger(__name__)

INITIAL_PRODUCTS = [
    {"name": "Vintage Camera", "description": "A classic camera with a timeless design.", "price": 299.99, "image": "https://placehold.co/400x300/F5EFE7/333?text=Camera", "category": "Electronics"},
    {"name": "Espresso Machine", "description": "Brew perfect espresso at home with ease.", "price": 159.99, "image": "https://placehold.co/400x300/D8C4B5/333?text=Espresso", "category": "Home Goods"},
    {"name": "Wireless Headphones", "description": "Immersive sound with noise cancellation.", "price": 129.50, "image": "https://placehold.co/400x300/C4B7A6/333?text=Headphones", "category": "Electronics"},
    {"name": "Leather Satchel", "description": "A stylish and durable bag for everyday use.", "price": 75.00, "image": "https://placehold.co/400x300/A0937D/333?text=Satchel", "category": "Apparel"},
    {"name": "Smart Watch", "description": "Stay connected on the go with this smart watch.", "price": 199.99, "image": "https://placehold.co/400x300/8B826D/333?text=Smart+Watch", "category": "Electronics"},
    {"name": "Ceramic Mug Set", "description": "Handcrafted mugs for your morning coffee.", "price": 35.00, "image": "https://placehold.co/400x300/776F61/333?text=Mugs", "category": "Home Goods"},
    {"name": "Classic Denim Jacket", "description": "A timeless jacket for any wardrobe.", "price": 89.99, "image": "https://placehold.co/400x300/625A4B/333?text=Jacket", "category": "Apparel"},
    {"name": "Mechanical Keyboard", "description": "Tactile keys for a satisfying typing experience.", "price": 149.00, "image": "https://placehold.co/400x300/4D453A/333?text=Keyboard", "category": "Electronics"},
]


def seed_products(db: Database) -> int:
    if db.products.count_documents({}) > 0:
        return 0
    now = datetime.now(timezone.utc)
    docs = [{**p, "created_at": now, "updated_at": now} for p in INITIAL_PRODUCTS]
    db.products.insert_many(docs)
    logger.info("Database seeded with %d initial products.", len(docs))
    return len(docs)
