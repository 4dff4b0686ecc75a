"""Error taxonomy shared by the client, its backends and the UI.

Every error carries a default user-facing message so views can show
``user_message(exc)`` without knowing which boundary raised it.
"""
from typing import Optional


class PassVaultError(Exception):
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None):
        self.message = message or self.default_message
        self.code = code
        super().__init__(self.message)


class InvalidConfiguration(PassVaultError):
    default_message = "Invalid generator configuration."


class ValidationError(PassVaultError):
    default_message = "Please fill in the required fields."


# --- identity boundary ---

class AuthError(PassVaultError):
    default_message = "An error occurred during sign in. Please try again."


class InvalidCredentials(AuthError):
    default_message = "Invalid email or password. Please try again."


class EmailNotVerified(AuthError):
    default_message = ("Please verify your email before signing in. "
                       "A new verification email has been sent.")


class AccountAlreadyExists(AuthError):
    default_message = "An account with this email already exists. Please try logging in instead."


class WeakPassword(AuthError):
    default_message = "Password should be at least 6 characters."


class RateLimited(AuthError):
    default_message = "Too many failed attempts. Please try again later."


class ProviderError(AuthError):
    pass


# --- persistence boundary ---

class StoreError(PassVaultError):
    default_message = "Failed to update your passwords. Please try again."


class NotFound(StoreError):
    default_message = "Password not found."


class RemoteUnavailable(StoreError):
    default_message = "Could not reach the server. Please try again."


def user_message(exc: BaseException) -> str:
    if isinstance(exc, PassVaultError):
        return exc.message
    return PassVaultError.default_message
