import time
import uuid
from typing import List, Optional, ClassVar
from sqlmodel import SQLModel, Field, Relationship

def _new_id() -> str:
    return uuid.uuid4().hex

class User(SQLModel, table=True):
    __tablename__: ClassVar[str] = "users"
    id: Optional[int] = Field(default=None, primary_key=True)
    uid: str = Field(default_factory=_new_id, index=True, unique=True)
    email: str = Field(index=True, unique=True)
    hashed_password: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool = Field(default=False)
    failed_logins: int = Field(default=0)
    locked_until: float = Field(default=0.0)
    # Bumped on every credential change; clients poll it for live updates
    revision: int = Field(default=0)
    created_at: float = Field(default_factory=time.time)
    credentials: List["Credential"] = Relationship(back_populates="owner", sa_relationship_kwargs={"cascade": "all, delete"})


class Credential(SQLModel, table=True):
    __tablename__: ClassVar[str] = "credentials"
    id: str = Field(default_factory=_new_id, primary_key=True, index=True)
    title: str
    username: str = ""
    email: str = ""
    password: str
    website: str = ""
    notes: str = ""
    category: str = "Personal"
    favorite: bool = Field(default=False)
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time, index=True)
    owner_id: int = Field(foreign_key="users.id", index=True)
    owner: User = Relationship(back_populates="credentials")


class ActionToken(SQLModel, table=True):
    """One-time tokens for email verification, password reset and OAuth codes."""
    __tablename__: ClassVar[str] = "action_tokens"
    token: str = Field(primary_key=True)
    purpose: str = Field(index=True)
    user_id: int = Field(foreign_key="users.id")
    expires_at: float
    used: bool = Field(default=False)
