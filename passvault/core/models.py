from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .errors import ValidationError

DEFAULT_CATEGORY = "Personal"
CATEGORIES = ["Personal", "Work", "Finance", "Social", "Entertainment", "Other"]

# Historical document shapes -> canonical field names
FIELD_ALIASES = {
    "isFavorite": "favorite",
    "is_favorite": "favorite",
    "url": "website",
    "site": "website",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

TEXT_FIELDS = ("title", "username", "email", "password", "website", "notes", "category")


class CredentialDraft(BaseModel):
    title: str = ""
    username: str = ""
    email: str = ""
    password: str = ""
    website: str = ""
    notes: str = ""
    category: str = DEFAULT_CATEGORY

    def validate_required(self):
        if not self.title.strip():
            raise ValidationError("Title is required")
        if not self.password.strip():
            raise ValidationError("Password is required")

    def to_document(self) -> dict[str, Any]:
        data = self.model_dump()
        data["category"] = data["category"] or DEFAULT_CATEGORY
        data["favorite"] = False
        return data


class CredentialPatch(BaseModel):
    """Partial update; only fields that were set are sent."""
    title: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    favorite: Optional[bool] = None

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        if "title" in data and not data["title"].strip():
            raise ValidationError("Title is required")
        if "password" in data and not data["password"].strip():
            raise ValidationError("Password is required")
        return data


class CredentialRecord(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    title: str = ""
    username: str = ""
    email: str = ""
    password: str = ""
    website: str = ""
    notes: str = ""
    category: str = DEFAULT_CATEGORY
    favorite: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_draft(self) -> CredentialDraft:
        return CredentialDraft(**self.model_dump(include=set(TEXT_FIELDS)))


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    uid: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool = False


def normalize_record(document: Mapping[str, Any]) -> CredentialRecord:
    """Map any stored document shape onto CredentialRecord.

    Absent or null text fields become empty strings and an empty category
    falls back to the default, so callers never see storage-shape drift.
    """
    data: dict[str, Any] = {}
    for key, value in document.items():
        name = FIELD_ALIASES.get(key, key)
        # A canonical key wins over its legacy alias
        if name in data and key != name:
            continue
        data[name] = value

    for name in TEXT_FIELDS:
        if data.get(name) is None:
            data[name] = ""
    data["category"] = data["category"] or DEFAULT_CATEGORY
    data["favorite"] = bool(data.get("favorite") or False)
    data["id"] = str(data["id"])

    known = set(CredentialRecord.model_fields)
    return CredentialRecord(**{k: v for k, v in data.items() if k in known})
