from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from pymongo.database import Database
from storefront.core.errors import ForbiddenError, UnauthenticatedError
from storefront.core.security import decode_token
from storefront.db.mongo import get_db
from storefront.services.users_service import get_user, is_admin

oauth2 = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def get_current_user(token: str | None = Depends(oauth2), db: Database = Depends(get_db)) -> dict:
    if not token:
        raise UnauthenticatedError("Access denied. No token provided.")
    payload = decode_token(token)
    user = get_user(db, payload.get("sub"))
    if user is None:
        raise UnauthenticatedError("User not found.")
    return user


def get_admin_user(user: dict = Depends(get_current_user)) -> dict:
    if not is_admin(user):
        raise ForbiddenError()
    return user
