"""Boundary interfaces for the external identity provider and document store.

Implementations raise the errors from ``passvault.core.errors``; transport
details never leak past this boundary.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from passvault.core.errors import PassVaultError
from passvault.core.models import Identity

AuthStateListener = Callable[[Optional[Identity]], None]
SnapshotListener = Callable[[list[dict[str, Any]]], None]
ErrorListener = Callable[[PassVaultError], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(ABC):

    @abstractmethod
    def current_user(self) -> Optional[Identity]: ...

    @abstractmethod
    def reload(self) -> Optional[Identity]:
        """Refresh the signed-in user from the provider (e.g. after the email was verified)."""

    @abstractmethod
    def on_auth_state_changed(self, listener: AuthStateListener) -> Unsubscribe:
        """Call *listener* with the current user now and again on every change."""

    @abstractmethod
    def sign_in_with_password(self, email: str, password: str) -> Identity: ...

    @abstractmethod
    def create_user(self, email: str, password: str,
                    display_name: Optional[str] = None) -> Identity:
        """Create the account and leave it signed in."""

    @abstractmethod
    def sign_in_with_oauth(self) -> Identity: ...

    @abstractmethod
    def sign_out(self) -> None: ...

    @abstractmethod
    def send_email_verification(self) -> None: ...

    @abstractmethod
    def send_password_reset(self, email: str) -> None: ...

    @abstractmethod
    def update_profile(self, display_name: Optional[str] = None,
                       photo_url: Optional[str] = None) -> Identity: ...


class DocumentStore(ABC):
    """Per-user collections of credential documents.

    Documents are plain dicts that carry their ``id``. The store assigns ids
    and the ``created_at``/``updated_at`` timestamps.
    """

    @abstractmethod
    def list(self, uid: str) -> list[dict[str, Any]]:
        """All documents, newest ``updated_at`` first."""

    @abstractmethod
    def get(self, uid: str, doc_id: str) -> dict[str, Any]: ...

    @abstractmethod
    def create(self, uid: str, data: dict[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def update(self, uid: str, doc_id: str, data: dict[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def delete(self, uid: str, doc_id: str) -> None: ...

    @abstractmethod
    def watch(self, uid: str, on_snapshot: SnapshotListener,
              on_error: ErrorListener) -> Unsubscribe:
        """Deliver the full list once now and again after every change."""
