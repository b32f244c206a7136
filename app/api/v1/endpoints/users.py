# backend-server/app/api/v1/endpoints/users.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db import models, session
from app.core import security
from app.core.config import settings
from app.schemas import user as user_schema
from app.services.record_store import RecordStore

router = APIRouter()

@router.get("/me", response_model=user_schema.User)
def read_user_me(current_user: models.User = Depends(security.get_current_user)):
    """
    Get the details for the currently logged-in user.
    """
    return current_user

@router.put("/me/password", status_code=status.HTTP_204_NO_CONTENT)
def update_user_password(
    passwords: user_schema.PasswordUpdate,
    db: Session = Depends(session.get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """
    Allows a logged-in user to change their own password.
    """
    if not security.verify_password(passwords.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Incorrect current password")

    current_user.hashed_password = security.get_password_hash(passwords.new_password)
    db.commit()
    return

@router.put("/me/signature", response_model=user_schema.User)
def update_signature(
    signature_in: user_schema.SignatureUpdate,
    db: Session = Depends(session.get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """ Stores an uploaded signature image (data URL) or a typed signature. """
    signature = signature_in.signature.strip()
    if not signature:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Signature must not be empty")
    limit = settings.SIGNATURE_IMAGE_MAX_CHARS if signature.startswith("data:image/") else settings.SIGNATURE_TEXT_MAX_CHARS
    if len(signature) > limit:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Signature is longer than {limit} characters")
    return RecordStore(db).update_user(current_user.id, signature=signature)

@router.delete("/me/signature", response_model=user_schema.User)
def delete_signature(
    db: Session = Depends(session.get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    return RecordStore(db).update_user(current_user.id, signature=None)
