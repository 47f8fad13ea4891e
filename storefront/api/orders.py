from fastapi import APIRouter, Depends, Header, Response, status
from pymongo.database import Database
from typing import Optional
from storefront.api.deps import get_current_user
from storefront.db.mongo import get_db
from storefront.models.schemas import CheckoutIn
from storefront.services import checkout_service, orders_service

checkout_router = APIRouter()
router = APIRouter()


@checkout_router.post("", status_code=status.HTTP_201_CREATED)
def checkout(
    payload: CheckoutIn,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    address = payload.shipping_address.model_dump()
    order, replayed = checkout_service.checkout(db, user["_id"], address, idempotency_key=idempotency_key)
    if replayed:
        response.status_code = status.HTTP_200_OK
    return {
        "message": "Order placed successfully!",
        "orderId": order["_id"],
        "order": order,
        "replayed": replayed,
    }


@router.get("")
def my_orders(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return orders_service.list_orders_for_user(db, user["_id"])


@router.get("/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return orders_service.get_order_for_user(db, user["_id"], order_id)
