import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "Storefront API")

    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "storefront")
    MONGO_TIMEOUT_MS: int = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))

    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "changeme")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))  # 7 days
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # the one privileged account
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "admin@example.com").strip().lower()
    ADMIN_PASSWORD: str | None = os.getenv("ADMIN_PASSWORD") or None

    SEED_PRODUCTS: bool = _env_bool("SEED_PRODUCTS", "true")
    CART_UPDATE_RETRIES: int = int(os.getenv("CART_UPDATE_RETRIES", "5"))
    # idempotency records are dropped by a TTL index after this long
    CHECKOUT_REQUEST_TTL_SECONDS: int = int(os.getenv("CHECKOUT_REQUEST_TTL_SECONDS", str(60 * 60 * 24)))
    # an unfinished checkout claim older than this may be taken over by a retry
    CHECKOUT_CLAIM_STALE_SECONDS: int = int(os.getenv("CHECKOUT_CLAIM_STALE_SECONDS", "300"))

    CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
