"""Session/identity gate.

Watches the identity provider and reduces it to three states. A session whose
email is not verified never counts as signed in: the gate signs it out again
and, when the session came from one of its own sign-in calls, re-sends the
verification email first.
"""
import logging
import threading
from typing import Callable, Optional, TypeVar

from passvault.core.errors import EmailNotVerified, PassVaultError, ProviderError
from passvault.core.events import EventChannel, SessionChanged, SessionStatus
from passvault.core.models import Identity

from .backend import IdentityProvider, Unsubscribe

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionGate:
    def __init__(self, provider: IdentityProvider, channel: Optional[EventChannel] = None):
        self.provider = provider
        self.channel = channel
        self.status = SessionStatus.LOADING
        self.identity: Optional[Identity] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._resend_verification = False
        self._tearing_down = False
        self._lock = threading.RLock()

    @property
    def is_signed_in(self) -> bool:
        return self.status == SessionStatus.AUTHENTICATED

    def start(self):
        if self._unsubscribe is None:
            self._unsubscribe = self.provider.on_auth_state_changed(self._on_auth_state)

    def close(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # --- state machine ---

    def _transition(self, status: SessionStatus, identity: Optional[Identity] = None):
        with self._lock:
            if status == self.status and identity == self.identity:
                return
            self.status = status
            self.identity = identity
        logger.info("Session %s", status.value)
        if self.channel is not None:
            self.channel.publish(SessionChanged(status, identity))

    def _on_auth_state(self, user: Optional[Identity]):
        if user is None:
            self._transition(SessionStatus.UNAUTHENTICATED)
            return
        if self._tearing_down:
            return
        if not user.email_verified:
            user = self.provider.reload() or user
        if user.email_verified:
            self._transition(SessionStatus.AUTHENTICATED, user)
        else:
            self._tear_down_unverified()

    def _tear_down_unverified(self):
        with self._lock:
            if self._tearing_down:
                return
            self._tearing_down = True
        try:
            if self._resend_verification:
                try:
                    self.provider.send_email_verification()
                except PassVaultError as exc:
                    logger.warning("Could not re-send verification email: %s", exc)
            logger.info("Signing out unverified session")
            self.provider.sign_out()
        finally:
            self._tearing_down = False
        self._transition(SessionStatus.UNAUTHENTICATED)

    def _call(self, action: Callable[[], T]) -> T:
        try:
            return action()
        except PassVaultError:
            raise
        except Exception as exc:
            logger.exception("Identity provider failed")
            raise ProviderError(str(exc) or None) from exc

    def _verified_sign_in(self, action: Callable[[], Identity]) -> Identity:
        self._resend_verification = True
        try:
            identity = self._call(action)
            # Providers that notify asynchronously haven't run the listener yet
            if not identity.email_verified and self.provider.current_user() is not None:
                refreshed = self._call(self.provider.reload)
                if refreshed is not None and refreshed.email_verified:
                    return refreshed
                self._tear_down_unverified()
        finally:
            self._resend_verification = False
        return identity

    # --- operations ---

    def sign_in_with_password(self, email: str, password: str) -> Identity:
        identity = self._verified_sign_in(lambda: self.provider.sign_in_with_password(email, password))
        if not identity.email_verified and not self.is_signed_in:
            raise EmailNotVerified(code="EMAIL_NOT_VERIFIED")
        return identity

    def sign_up_with_password(self, email: str, password: str,
                              display_name: Optional[str] = None) -> Identity:
        identity = self._verified_sign_in(
            lambda: self.provider.create_user(email, password, display_name))
        logger.info("Account created, verification email sent")
        return identity

    def sign_in_with_oauth(self) -> Identity:
        identity = self._verified_sign_in(self.provider.sign_in_with_oauth)
        if not identity.email_verified and not self.is_signed_in:
            raise EmailNotVerified("Please verify your account email before logging in.",
                                   code="EMAIL_NOT_VERIFIED")
        return identity

    def sign_out(self):
        self._call(self.provider.sign_out)
        self._transition(SessionStatus.UNAUTHENTICATED)

    def send_password_reset(self, email: str):
        self._call(lambda: self.provider.send_password_reset(email))
        logger.info("Password reset email requested")

    def resend_verification(self, email: Optional[str] = None, password: Optional[str] = None):
        if self.provider.current_user() is not None:
            self._call(self.provider.send_email_verification)
            return
        if not email or not password:
            raise ProviderError("No user is currently signed in")
        # Signing in an unverified account re-sends the email and signs it out again
        self._verified_sign_in(lambda: self.provider.sign_in_with_password(email, password))

    def update_profile(self, display_name: Optional[str] = None,
                       photo_url: Optional[str] = None) -> Identity:
        identity = self._call(lambda: self.provider.update_profile(display_name, photo_url))
        if self.is_signed_in:
            self._transition(SessionStatus.AUTHENTICATED, identity)
        return identity
