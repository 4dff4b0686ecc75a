# passvault/server/routers/credentials.py
import logging
import time
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlmodel import Session, select, col
from pydantic import BaseModel

from ..database import get_session
from ..models import Credential, User
from .auth import get_verified_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credentials")

class CredentialCreate(BaseModel):
    title: str
    username: str = ""
    email: str = ""
    password: str
    website: str = ""
    notes: str = ""
    category: str = "Personal"
    favorite: bool = False

class CredentialUpdate(BaseModel):
    title: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    favorite: Optional[bool] = None

class CredentialRead(BaseModel):
    id: str
    title: str
    username: str
    email: str
    password: str
    website: str
    notes: str
    category: str
    favorite: bool
    created_at: float
    updated_at: float

class RevisionRead(BaseModel):
    revision: int

def _server_timestamp(previous: float = 0.0) -> float:
    # updated_at never moves backwards for a document
    return max(time.time(), previous + 1e-6)

def _owned(session: Session, user: User, credential_id: str) -> Credential:
    credential = session.get(Credential, credential_id)
    if credential is None or credential.owner_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="NOT_FOUND")
    return credential

def _bump_revision(session: Session, user: User):
    user.revision += 1
    session.add(user)

@router.get("", response_model=List[CredentialRead])
def list_credentials(current_user: User = Depends(get_verified_user),
                     session: Session = Depends(get_session)):
    statement = (select(Credential)
                 .where(Credential.owner_id == current_user.id)
                 .order_by(col(Credential.updated_at).desc()))
    return session.exec(statement).all()

@router.get("/revision", response_model=RevisionRead)
def read_revision(current_user: User = Depends(get_verified_user)):
    return {"revision": current_user.revision}

@router.post("", response_model=CredentialRead, status_code=status.HTTP_201_CREATED)
def create_credential(payload: CredentialCreate,
                      current_user: User = Depends(get_verified_user),
                      session: Session = Depends(get_session)):
    if not payload.title.strip() or not payload.password.strip():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="MISSING_REQUIRED_FIELD")
    now = _server_timestamp()
    credential = Credential(**payload.model_dump(), owner_id=current_user.id, created_at=now, updated_at=now)  # type: ignore[arg-type]
    session.add(credential)
    _bump_revision(session, current_user)
    session.commit()
    session.refresh(credential)
    logger.info("[INSERT] %s for user %s", credential.id, current_user.uid)
    return credential

@router.get("/{credential_id}", response_model=CredentialRead)
def read_credential(credential_id: str,
                    current_user: User = Depends(get_verified_user),
                    session: Session = Depends(get_session)):
    return _owned(session, current_user, credential_id)

@router.patch("/{credential_id}", response_model=CredentialRead)
def update_credential(credential_id: str, changes: CredentialUpdate,
                      current_user: User = Depends(get_verified_user),
                      session: Session = Depends(get_session)):
    credential = _owned(session, current_user, credential_id)
    data = changes.model_dump(exclude_none=True)
    if any(key in data and not data[key].strip() for key in ("title", "password")):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="MISSING_REQUIRED_FIELD")
    for key, value in data.items():
        setattr(credential, key, value)
    credential.updated_at = _server_timestamp(credential.updated_at)
    session.add(credential)
    _bump_revision(session, current_user)
    session.commit()
    session.refresh(credential)
    logger.info("[UPDATE] %s", credential_id)
    return credential

@router.delete("/{credential_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_credential(credential_id: str,
                      current_user: User = Depends(get_verified_user),
                      session: Session = Depends(get_session)):
    credential = session.get(Credential, credential_id)
    # Deleting something that is already gone is not an error
    if credential is not None and credential.owner_id == current_user.id:
        session.delete(credential)
        _bump_revision(session, current_user)
        session.commit()
        logger.info("[DELETE] %s", credential_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
