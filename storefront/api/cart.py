from fastapi import APIRouter, Depends
from pymongo.database import Database
from storefront.api.deps import get_current_user
from storefront.db.mongo import get_db
from storefront.models.schemas import CartItemIn
from storefront.services import cart_service

router = APIRouter()


@router.get("")
def get_cart(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return cart_service.get_cart(db, user["_id"])


@router.post("")
def add_to_cart(item: CartItemIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return cart_service.add_item(db, user["_id"], item.product_id, item.quantity)


@router.delete("/{product_id}")
def remove_item(product_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return cart_service.remove_item(db, user["_id"], product_id)
