import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import ConnectionFailure
from storefront.api import admin, auth, cart, orders, products
from storefront.core.config import settings
from storefront.core.errors import StorefrontError, UnavailableError, ValidationError
from storefront.db.mongo import close_client, ensure_indexes, get_db
from storefront.seed import seed_products
from storefront.services.users_service import bootstrap_admin

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _prepare_database():
    db = get_db()
    ensure_indexes(db)
    if settings.SEED_PRODUCTS:
        seed_products(db)
    bootstrap_admin(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # pymongo blocks, keep it off the event loop
    try:
        await run_in_threadpool(_prepare_database)
    except ConnectionFailure as e:
        # keep serving; requests report Unavailable until MongoDB is back
        logger.error("MongoDB not reachable at startup: %s", e)
    yield
    await run_in_threadpool(close_client)


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(exc: StorefrontError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
        headers=headers,
    )


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return error_response(ValidationError("; ".join(problems) or "Invalid request."))


@app.exception_handler(ConnectionFailure)
async def database_error_handler(request: Request, exc: ConnectionFailure) -> JSONResponse:
    logger.error("MongoDB unavailable during %s %s: %s", request.method, request.url.path, exc)
    return error_response(UnavailableError())


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(products.router, prefix="/api/products", tags=["products"])
app.include_router(cart.router, prefix="/api/cart", tags=["cart"])
app.include_router(orders.checkout_router, prefix="/api/checkout", tags=["checkout"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])


@app.get("/")
def root():
    return {"status": "ok", "app": settings.APP_NAME}


@app.get("/api/health")
def health(db: Database = Depends(get_db)):
    db.command("ping")
    return {"status": "ok", "database": db.name}


if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
