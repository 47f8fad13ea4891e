from fastapi import APIRouter, Depends, status
from pymongo.database import Database
from storefront.api.deps import get_admin_user
from storefront.db.mongo import get_db
from storefront.models.schemas import OrderStatusUpdate, ProductIn, ProductUpdate
from storefront.services import orders_service, products_service
from storefront.services.catalog import product_to_client

router = APIRouter(dependencies=[Depends(get_admin_user)])


@router.get("/orders")
def all_orders(db: Database = Depends(get_db)):
    return orders_service.list_all_orders(db)


@router.put("/orders/{order_id}")
def update_order_status(order_id: str, payload: OrderStatusUpdate, db: Database = Depends(get_db)):
    order = orders_service.update_order_status(db, order_id, payload.status)
    return {"message": "Order status updated successfully.", "order": order}


@router.post("/products", status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductIn, db: Database = Depends(get_db)):
    return product_to_client(products_service.create_product(db, payload.model_dump()))


@router.put("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, db: Database = Depends(get_db)):
    doc = products_service.update_product(db, product_id, payload.model_dump(exclude_unset=True))
    return product_to_client(doc)


@router.delete("/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    products_service.delete_product(db, product_id)
    return {"message": "Product deleted successfully."}
