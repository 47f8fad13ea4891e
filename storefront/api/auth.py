from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from pymongo.database import Database
from storefront.api.deps import get_current_user
from storefront.core.security import create_access_token
from storefront.db.mongo import get_db
from storefront.models.schemas import Token, UserCreate, UserLogin
from storefront.services import users_service

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Database = Depends(get_db)):
    user = users_service.register_user(db, payload.email, payload.password)
    return {"token": create_access_token(user), "user": users_service.user_to_client(user)}


@router.post("/login")
def login(payload: UserLogin, db: Database = Depends(get_db)):
    user = users_service.authenticate(db, payload.email, payload.password)
    return {"token": create_access_token(user), "user": users_service.user_to_client(user)}


@router.post("/token", response_model=Token)
def token(form_data: OAuth2PasswordRequestForm = Depends(), db: Database = Depends(get_db)):
    # OAuth2 password flow for the interactive docs; username is the email
    user = users_service.authenticate(db, form_data.username, form_data.password)
    return {"access_token": create_access_token(user), "token_type": "bearer"}


@router.get("/me")
def me(user=Depends(get_current_user)):
    return users_service.user_to_client(user)
