from fastapi import APIRouter, Depends, Query
from pymongo.database import Database
from typing import Optional
from storefront.db.mongo import get_db
from storefront.services import catalog

router = APIRouter()


@router.get("")
def list_products(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    db: Database = Depends(get_db),
):
    return [catalog.product_to_client(p) for p in catalog.list_products(db, category=category, search=search)]


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return catalog.product_to_client(catalog.get_product(db, product_id))
