import logging
from datetime import datetime, timezone
from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from storefront.core.config import settings
from storefront.core.errors import ConflictError, UnauthenticatedError, ValidationError
from storefront.core.security import hash_password, verify_password

logger = logging.getLogger(__name__)

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"

MIN_PASSWORD_LENGTH = 6


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def user_to_client(user: dict) -> dict:
    return {"id": str(user["_id"]), "email": user["email"], "role": user.get("role", ROLE_CUSTOMER)}


def is_admin(user: dict) -> bool:
    return user.get("role") == ROLE_ADMIN


def get_user(db: Database, user_id) -> dict | None:
    if not ObjectId.is_valid(str(user_id)):
        return None
    return db.users.find_one({"_id": ObjectId(str(user_id))})


def register_user(db: Database, email: str, password: str) -> dict:
    email = _normalize_email(email)
    if not email:
        raise ValidationError("Email is required.")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if db.users.find_one({"email": email}):
        raise ConflictError("User already registered.")

    user = {
        "email": email,
        "password": hash_password(password),
        "role": ROLE_ADMIN if email == settings.ADMIN_EMAIL else ROLE_CUSTOMER,
        "created_at": datetime.now(timezone.utc),
    }
    try:
        db.users.insert_one(user)
    except DuplicateKeyError:
        raise ConflictError("User already registered.")
    logger.info("Registered user %s (%s)", user["_id"], user["role"])
    return user


def authenticate(db: Database, email: str, password: str) -> dict:
    user = db.users.find_one({"email": _normalize_email(email)})
    # same message for unknown email and wrong password
    if not user or not verify_password(password or "", user["password"]):
        raise UnauthenticatedError("Invalid credentials.")
    return user


def bootstrap_admin(db: Database, email: str, password: str | None = None) -> dict | None:
    """Make ``email`` the only admin account, creating it when a password is given."""
    email = _normalize_email(email)
    if not email:
        return None
    demoted = db.users.update_many({"role": ROLE_ADMIN, "email": {"$ne": email}}, {"$set": {"role": ROLE_CUSTOMER}})
    if demoted.modified_count:
        logger.warning("Demoted %d account(s) that were not %s", demoted.modified_count, email)

    admin = db.users.find_one({"email": email})
    if admin is None:
        if not password:
            logger.info("Admin account %s not registered yet", email)
            return None
        admin = {
            "email": email,
            "password": hash_password(password),
            "role": ROLE_ADMIN,
            "created_at": datetime.now(timezone.utc),
        }
        db.users.insert_one(admin)
        logger.info("Created admin account %s", email)
    elif admin.get("role") != ROLE_ADMIN:
        db.users.update_one({"_id": admin["_id"]}, {"$set": {"role": ROLE_ADMIN}})
        admin["role"] = ROLE_ADMIN
        logger.info("Promoted %s to admin", email)
    return admin
