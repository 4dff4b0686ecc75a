"""In-process identity provider and document store.

Used for offline mode (``PASSVAULT_BACKEND=memory``) and as the test double
for the HTTP backend. Nothing here survives a restart.
"""
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from passvault.core.errors import (AccountAlreadyExists, InvalidCredentials, NotFound,
                                   ProviderError, RateLimited, RemoteUnavailable, WeakPassword)
from passvault.core.models import Identity

from .backend import (AuthStateListener, DocumentStore, ErrorListener, IdentityProvider,
                      SnapshotListener, Unsubscribe)

logger = logging.getLogger(__name__)


def _check_email(email: str):
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ProviderError("Please enter a valid email address.", code="INVALID_EMAIL")


@dataclass
class _Account:
    uid: str
    email: str
    password: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool = False
    failed_logins: int = 0

    def identity(self) -> Identity:
        return Identity(uid=self.uid, email=self.email, display_name=self.display_name,
                        photo_url=self.photo_url, email_verified=self.email_verified)


@dataclass(frozen=True)
class SentEmail:
    kind: str  # "verify_email" or "reset_password"
    email: str


class InMemoryIdentityProvider(IdentityProvider):
    def __init__(self, min_password_length: int = 6, max_failed_logins: int = 5,
                 oauth_email: Optional[str] = None, oauth_email_verified: bool = True,
                 auto_verify: bool = False):
        self.min_password_length = min_password_length
        self.max_failed_logins = max_failed_logins
        self.oauth_email = oauth_email
        self.oauth_email_verified = oauth_email_verified
        # Offline there is no inbox, so sending the email stands in for clicking the link
        self.auto_verify = auto_verify
        self.outbox: list[SentEmail] = []
        self._accounts: dict[str, _Account] = {}
        self._current: Optional[_Account] = None
        self._listeners: list[AuthStateListener] = []
        self._lock = threading.RLock()

    # --- helpers for seeding and simulating the inbox ---

    def add_user(self, email: str, password: str, display_name: Optional[str] = None,
                 email_verified: bool = False) -> Identity:
        with self._lock:
            account = _Account(uid=uuid.uuid4().hex, email=email, password=password,
                               display_name=display_name, email_verified=email_verified)
            self._accounts[email.lower()] = account
            return account.identity()

    def verify_email(self, email: str):
        with self._lock:
            account = self._accounts.get(email.lower())
            if account is None:
                raise ProviderError(f"No account for {email}")
            account.email_verified = True

    def _notify(self):
        with self._lock:
            user = self._current.identity() if self._current else None
            listeners = list(self._listeners)
        for listener in listeners:
            listener(user)

    def _set_current(self, account: Optional[_Account]):
        with self._lock:
            self._current = account
        self._notify()

    # --- IdentityProvider ---

    def current_user(self) -> Optional[Identity]:
        with self._lock:
            return self._current.identity() if self._current else None

    def reload(self) -> Optional[Identity]:
        return self.current_user()

    def on_auth_state_changed(self, listener: AuthStateListener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)
        listener(self.current_user())

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def sign_in_with_password(self, email: str, password: str) -> Identity:
        _check_email(email)
        with self._lock:
            account = self._accounts.get(email.lower())
            if account is not None and account.failed_logins >= self.max_failed_logins:
                raise RateLimited(code="TOO_MANY_ATTEMPTS_TRY_LATER")
            if account is None or account.password != password:
                if account is not None:
                    account.failed_logins += 1
                raise InvalidCredentials(code="INVALID_LOGIN_CREDENTIALS")
            account.failed_logins = 0
        self._set_current(account)
        return account.identity()

    def create_user(self, email: str, password: str,
                    display_name: Optional[str] = None) -> Identity:
        _check_email(email)
        with self._lock:
            if email.lower() in self._accounts:
                raise AccountAlreadyExists(code="EMAIL_EXISTS")
            if len(password) < self.min_password_length:
                raise WeakPassword(code="WEAK_PASSWORD")
            self.add_user(email, password, display_name=display_name)
            account = self._accounts[email.lower()]
        self._set_current(account)
        return account.identity()

    def sign_in_with_oauth(self) -> Identity:
        if not self.oauth_email:
            raise ProviderError("OAuth sign-in is not available.")
        with self._lock:
            account = self._accounts.get(self.oauth_email.lower())
            if account is None:
                self.add_user(self.oauth_email, uuid.uuid4().hex,
                              email_verified=self.oauth_email_verified)
                account = self._accounts[self.oauth_email.lower()]
        self._set_current(account)
        return account.identity()

    def sign_out(self):
        with self._lock:
            was_signed_in = self._current is not None
        if was_signed_in:
            self._set_current(None)

    def send_email_verification(self):
        with self._lock:
            if self._current is None:
                raise ProviderError("No user is currently signed in")
            self.outbox.append(SentEmail("verify_email", self._current.email))
            if self.auto_verify:
                self._current.email_verified = True
                logger.info("Auto-verified %s", self._current.email)

    def send_password_reset(self, email: str):
        _check_email(email)
        with self._lock:
            # Unknown addresses are accepted silently, as the server does
            if email.lower() in self._accounts:
                self.outbox.append(SentEmail("reset_password", email))

    def update_profile(self, display_name: Optional[str] = None,
                       photo_url: Optional[str] = None) -> Identity:
        with self._lock:
            if self._current is None:
                raise ProviderError("No user is currently signed in")
            if display_name is not None:
                self._current.display_name = display_name
            if photo_url is not None:
                self._current.photo_url = photo_url
            return self._current.identity()


class InMemoryDocumentStore(DocumentStore):
    def __init__(self):
        self.available = True
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._watchers: dict[str, list[tuple[SnapshotListener, ErrorListener]]] = {}
        self._last_ts = 0.0
        self._lock = threading.RLock()

    def _check_available(self):
        if not self.available:
            raise RemoteUnavailable()

    def _server_timestamp(self) -> datetime:
        # Never go backwards, even if the wall clock does
        ts = max(time.time(), self._last_ts + 1e-6)
        self._last_ts = ts
        return datetime.fromtimestamp(ts, timezone.utc)

    def _snapshot(self, uid: str) -> list[dict[str, Any]]:
        docs = self._collections.get(uid, {}).values()
        return [dict(d) for d in sorted(docs, key=lambda d: d["updated_at"], reverse=True)]

    def _notify(self, uid: str):
        with self._lock:
            snapshot = self._snapshot(uid)
            watchers = list(self._watchers.get(uid, []))
        for on_snapshot, _ in watchers:
            on_snapshot([dict(d) for d in snapshot])

    def list(self, uid: str) -> list[dict[str, Any]]:
        self._check_available()
        with self._lock:
            return self._snapshot(uid)

    def get(self, uid: str, doc_id: str) -> dict[str, Any]:
        self._check_available()
        with self._lock:
            doc = self._collections.get(uid, {}).get(doc_id)
            if doc is None:
                raise NotFound()
            return dict(doc)

    def create(self, uid: str, data: dict[str, Any]) -> dict[str, Any]:
        self._check_available()
        with self._lock:
            now = self._server_timestamp()
            doc = {k: v for k, v in data.items() if k != "id"}
            doc.update(id=uuid.uuid4().hex, created_at=now, updated_at=now)
            self._collections.setdefault(uid, {})[doc["id"]] = doc
            result = dict(doc)
        self._notify(uid)
        return result

    def update(self, uid: str, doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
        self._check_available()
        with self._lock:
            doc = self._collections.get(uid, {}).get(doc_id)
            if doc is None:
                raise NotFound()
            doc.update({k: v for k, v in data.items() if k not in ("id", "created_at")})
            doc["updated_at"] = self._server_timestamp()
            result = dict(doc)
        self._notify(uid)
        return result

    def delete(self, uid: str, doc_id: str):
        self._check_available()
        with self._lock:
            existed = self._collections.get(uid, {}).pop(doc_id, None) is not None
        if existed:
            self._notify(uid)

    def watch(self, uid: str, on_snapshot: SnapshotListener,
              on_error: ErrorListener) -> Unsubscribe:
        entry = (on_snapshot, on_error)
        with self._lock:
            self._watchers.setdefault(uid, []).append(entry)
        try:
            on_snapshot(self.list(uid))
        except RemoteUnavailable as exc:
            logger.warning("Initial snapshot for %s failed: %s", uid, exc)
            on_error(exc)

        def unsubscribe():
            with self._lock:
                watchers = self._watchers.get(uid, [])
                if entry in watchers:
                    watchers.remove(entry)
        return unsubscribe
