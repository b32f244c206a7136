# backend-server/app/api/v1/endpoints/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from app.db import session, models
from app.core import security
from app.schemas import token as token_schema
from app.schemas import user as user_schema
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/token", response_model=token_schema.Token)
def login(db: Session = Depends(session.get_db), form_data: OAuth2PasswordRequestForm = Depends()):
    user = db.query(models.User).filter(models.User.email == form_data.username).first()
    if not user or not security.verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect username or password")

    access_token = security.create_access_token(data={"sub": user.email})
    return {"access_token": access_token, "token_type": "bearer"}

@router.post("/register", response_model=user_schema.User, status_code=status.HTTP_201_CREATED)
def register(user_in: user_schema.UserCreate, db: Session = Depends(session.get_db)):
    """ Creates a trainee or trainer account. """
    store = RecordStore(db)
    if store.get_user_by_email(user_in.email):
        raise HTTPException(status_code=409, detail="Email already registered")

    user = store.create_user(
        email=user_in.email, full_name=user_in.full_name,
        first_name=user_in.first_name, last_name=user_in.last_name,
        company=user_in.company, role=user_in.role.value,
        hashed_password=security.get_password_hash(user_in.password),
    )
    logger.info("Registered %s account %s", user.role, user.id)
    return user
