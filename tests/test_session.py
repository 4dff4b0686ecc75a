from unittest.mock import patch

import pytest

from passvault.client.memory_backend import InMemoryIdentityProvider
from passvault.client.session import SessionGate
from passvault.core.errors import (AccountAlreadyExists, EmailNotVerified, InvalidCredentials,
                                   ProviderError, RateLimited, WeakPassword)
from passvault.core.events import EventChannel, SessionChanged, SessionStatus

from conftest import PASSWORD, UNVERIFIED_EMAIL, VERIFIED_EMAIL


def kinds(provider):
    return [mail.kind for mail in provider.outbox]


class TestLifecycle:
    def test_loading_until_started(self, provider):
        assert SessionGate(provider).status == SessionStatus.LOADING

    def test_start_without_user(self, gate, channel):
        assert gate.status == SessionStatus.UNAUTHENTICATED
        assert channel.drain() == [SessionChanged(SessionStatus.UNAUTHENTICATED)]

    def test_start_with_verified_user(self, provider):
        provider.sign_in_with_password(VERIFIED_EMAIL, PASSWORD)
        gate = SessionGate(provider)
        gate.start()
        assert gate.is_signed_in
        assert gate.identity.email == VERIFIED_EMAIL

    def test_close_stops_listening(self, gate, provider):
        gate.close()
        provider.sign_in_with_password(VERIFIED_EMAIL, PASSWORD)
        assert gate.status == SessionStatus.UNAUTHENTICATED


class TestUnverifiedSessions:
    def test_notification_is_signed_out_exactly_once(self, gate, provider, channel):
        channel.drain()
        with patch.object(provider, "sign_out", wraps=provider.sign_out) as sign_out:
            provider.sign_in_with_password(UNVERIFIED_EMAIL, PASSWORD)
        sign_out.assert_called_once()
        assert gate.status == SessionStatus.UNAUTHENTICATED
        assert provider.current_user() is None
        # No resend for sessions the gate didn't start
        assert kinds(provider) == []
        assert all(e.status != SessionStatus.AUTHENTICATED for e in channel.drain())

    def test_sign_in_resends_and_raises(self, gate, provider):
        with patch.object(provider, "sign_out", wraps=provider.sign_out) as sign_out:
            with pytest.raises(EmailNotVerified):
                gate.sign_in_with_password(UNVERIFIED_EMAIL, PASSWORD)
        sign_out.assert_called_once()
        assert kinds(provider) == ["verify_email"]
        assert not gate.is_signed_in

    def test_sign_in_after_verifying(self, gate, provider):
        with pytest.raises(EmailNotVerified):
            gate.sign_in_with_password(UNVERIFIED_EMAIL, PASSWORD)
        provider.verify_email(UNVERIFIED_EMAIL)
        identity = gate.sign_in_with_password(UNVERIFIED_EMAIL, PASSWORD)
        assert identity.email_verified
        assert gate.is_signed_in


class TestPasswordSignIn:
    def test_verified(self, gate, provider, channel):
        channel.drain()
        identity = gate.sign_in_with_password(VERIFIED_EMAIL, PASSWORD)
        assert identity.display_name == "Alice"
        assert gate.is_signed_in
        assert channel.drain() == [SessionChanged(SessionStatus.AUTHENTICATED, identity)]

    def test_wrong_password(self, gate):
        with pytest.raises(InvalidCredentials) as excinfo:
            gate.sign_in_with_password(VERIFIED_EMAIL, "wrong")
        assert excinfo.value.message == "Invalid email or password. Please try again."

    def test_unknown_account(self, gate):
        with pytest.raises(InvalidCredentials):
            gate.sign_in_with_password("nobody@example.com", PASSWORD)

    def test_rate_limited(self, gate):
        for _ in range(5):
            with pytest.raises(InvalidCredentials):
                gate.sign_in_with_password(VERIFIED_EMAIL, "wrong")
        with pytest.raises(RateLimited) as excinfo:
            gate.sign_in_with_password(VERIFIED_EMAIL, PASSWORD)
        assert excinfo.value.message == "Too many failed attempts. Please try again later."

    def test_invalid_email(self, gate):
        with pytest.raises(ProviderError) as excinfo:
            gate.sign_in_with_password("not-an-email", PASSWORD)
        assert excinfo.value.code == "INVALID_EMAIL"


class TestSignUp:
    def test_sends_verification_and_stays_signed_out(self, gate, provider):
        identity = gate.sign_up_with_password("carol@example.com", PASSWORD, "Carol")
        assert identity.display_name == "Carol"
        assert not identity.email_verified
        assert kinds(provider) == ["verify_email"]
        assert provider.current_user() is None
        assert gate.status == SessionStatus.UNAUTHENTICATED

    def test_existing_account(self, gate):
        with pytest.raises(AccountAlreadyExists):
            gate.sign_up_with_password(VERIFIED_EMAIL, PASSWORD)

    def test_weak_password(self, gate):
        with pytest.raises(WeakPassword) as excinfo:
            gate.sign_up_with_password("dave@example.com", "12345")
        assert excinfo.value.message == "Password should be at least 6 characters."


class TestOAuth:
    def test_verified_account(self, gate):
        identity = gate.sign_in_with_oauth()
        assert identity.email == "oauth@example.com"
        assert gate.is_signed_in

    def test_unverified_account(self):
        provider = InMemoryIdentityProvider(oauth_email="eve@example.com",
                                            oauth_email_verified=False)
        gate = SessionGate(provider, EventChannel())
        gate.start()
        with pytest.raises(EmailNotVerified) as excinfo:
            gate.sign_in_with_oauth()
        assert excinfo.value.message == "Please verify your account email before logging in."
        assert provider.current_user() is None

    def test_not_configured(self):
        gate = SessionGate(InMemoryIdentityProvider())
        gate.start()
        with pytest.raises(ProviderError):
            gate.sign_in_with_oauth()


class TestAccountOperations:
    def test_sign_out(self, gate):
        gate.sign_in_with_password(VERIFIED_EMAIL, PASSWORD)
        gate.sign_out()
        assert gate.status == SessionStatus.UNAUTHENTICATED
        assert gate.identity is None

    def test_password_reset(self, gate, provider):
        gate.send_password_reset(VERIFIED_EMAIL)
        gate.send_password_reset("nobody@example.com")
        assert kinds(provider) == ["reset_password"]

    def test_unexpected_provider_failure_is_wrapped(self, gate, provider):
        with patch.object(provider, "send_password_reset", side_effect=RuntimeError("boom")):
            with pytest.raises(ProviderError, match="boom"):
                gate.send_password_reset(VERIFIED_EMAIL)

    def test_resend_verification_needs_a_user(self, gate):
        with pytest.raises(ProviderError):
            gate.resend_verification()

    def test_resend_verification_with_credentials(self, gate, provider):
        gate.resend_verification(UNVERIFIED_EMAIL, PASSWORD)
        assert kinds(provider) == ["verify_email"]
        assert provider.current_user() is None
        assert not gate.is_signed_in

    def test_update_profile(self, gate, channel):
        gate.sign_in_with_password(VERIFIED_EMAIL, PASSWORD)
        channel.drain()
        identity = gate.update_profile(display_name="Alice B")
        assert gate.identity.display_name == "Alice B"
        assert channel.drain() == [SessionChanged(SessionStatus.AUTHENTICATED, identity)]
