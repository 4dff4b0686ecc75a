"""REST backend: identity provider and document store over ``requests``.

Both halves share one ``ApiClient`` so the bearer token obtained at sign-in is
used by the document calls.
"""
import logging
import secrets
import threading
import time
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse

import requests

from passvault.core.errors import (AccountAlreadyExists, EmailNotVerified, InvalidCredentials,
                                   NotFound, PassVaultError, ProviderError, RateLimited,
                                   RemoteUnavailable, WeakPassword)
from passvault.core.models import Identity

from .backend import (AuthStateListener, DocumentStore, ErrorListener, IdentityProvider,
                      SnapshotListener, Unsubscribe)
from .config import ClientSettings

logger = logging.getLogger(__name__)

AUTH_ERRORS = {
    "EMAIL_EXISTS": AccountAlreadyExists,
    "INVALID_LOGIN_CREDENTIALS": InvalidCredentials,
    "TOO_MANY_ATTEMPTS_TRY_LATER": RateLimited,
    "WEAK_PASSWORD": WeakPassword,
    "EMAIL_NOT_VERIFIED": EmailNotVerified,
}

PROVIDER_MESSAGES = {
    "INVALID_EMAIL": "Please enter a valid email address.",
    "INVALID_TOKEN": "This link is invalid or has expired.",
    "USER_DISABLED": "This account has been disabled.",
}


def _detail(resp: requests.Response) -> str:
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    return detail if isinstance(detail, str) else str(detail)


def auth_error(resp: requests.Response) -> PassVaultError:
    code = _detail(resp)
    if code in AUTH_ERRORS:
        return AUTH_ERRORS[code](code=code)
    if resp.status_code == 429:
        return RateLimited(code=code)
    return ProviderError(PROVIDER_MESSAGES.get(code, f"Sign-in service error ({resp.status_code}): {code}"),
                         code=code)


def store_error(resp: requests.Response) -> PassVaultError:
    code = _detail(resp)
    if resp.status_code == 404:
        return NotFound(code=code)
    return RemoteUnavailable(f"Server returned {resp.status_code}: {code}", code=code)


class ApiClient:
    def __init__(self, settings: ClientSettings, session: Optional[requests.Session] = None):
        self.base_url = settings.SERVER_URL.rstrip("/")
        self.timeout = settings.REQUEST_TIMEOUT
        self.http = session or requests.Session()
        self.token: Optional[str] = None

    def request(self, method: str, path: str, *, errors=auth_error,
                transport_error=ProviderError, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            resp = self.http.request(method, f"{self.base_url}{path}",
                                     headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise transport_error(f"Could not reach the server: {exc}") from exc
        if resp.status_code >= 400:
            logger.info("%s %s -> %s", method, path, resp.status_code)
            raise errors(resp)
        return resp


class _OAuthCallbackHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        query = parse_qs(urlparse(self.path).query)
        if "code" in query or "error" in query:
            self.server.oauth_params = {k: v[0] for k, v in query.items()}  # type: ignore[attr-defined]
        body = b"Sign-in complete. You can close this window and return to PassVault."
        self.send_response(200)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug("oauth callback: " + format, *args)


class HttpIdentityProvider(IdentityProvider):
    def __init__(self, api: ApiClient, settings: ClientSettings):
        self.api = api
        self.settings = settings
        self._user: Optional[Identity] = None
        self._listeners: list[AuthStateListener] = []
        self._lock = threading.RLock()

    def _set_user(self, user: Optional[Identity]):
        with self._lock:
            self._user = user
            listeners = list(self._listeners)
        for listener in listeners:
            listener(user)

    def _fetch_me(self) -> Identity:
        data = self.api.request("GET", "/auth/me").json()
        return Identity(**data)

    def _start_session(self, token: str) -> Identity:
        self.api.token = token
        user = self._fetch_me()
        self._set_user(user)
        return user

    def current_user(self) -> Optional[Identity]:
        return self._user

    def reload(self) -> Optional[Identity]:
        if not self.api.token:
            return None
        user = self._fetch_me()
        with self._lock:
            self._user = user
        return user

    def on_auth_state_changed(self, listener: AuthStateListener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)
        listener(self._user)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def sign_in_with_password(self, email: str, password: str) -> Identity:
        resp = self.api.request("POST", "/auth/token",
                                data={"username": email, "password": password})
        return self._start_session(resp.json()["access_token"])

    def create_user(self, email: str, password: str,
                    display_name: Optional[str] = None) -> Identity:
        self.api.request("POST", "/auth/register",
                         json={"email": email, "password": password, "display_name": display_name})
        logger.info("Registered new account")
        return self.sign_in_with_password(email, password)

    def _wait_for_oauth_code(self) -> tuple[str, str]:
        state = secrets.token_urlsafe(16)
        with HTTPServer(("127.0.0.1", 0), _OAuthCallbackHandler) as server:
            server.oauth_params = None  # type: ignore[attr-defined]
            server.timeout = 1.0
            redirect_uri = f"http://127.0.0.1:{server.server_port}/callback"
            url = f"{self.api.base_url}/auth/oauth/authorize?" + urlencode({
                "provider": self.settings.OAUTH_PROVIDER,
                "redirect_uri": redirect_uri,
                "state": state,
            })
            webbrowser.open(url)

            deadline = time.monotonic() + self.settings.OAUTH_TIMEOUT
            while server.oauth_params is None and time.monotonic() < deadline:  # type: ignore[attr-defined]
                server.handle_request()
            params = server.oauth_params  # type: ignore[attr-defined]

        if not params:
            raise ProviderError("The sign-in window was closed before completing.")
        if params.get("state") != state:
            raise ProviderError("Sign-in response did not match the request.")
        if "error" in params:
            raise ProviderError(f"Sign-in was cancelled: {params['error']}")
        return params["code"], redirect_uri

    def sign_in_with_oauth(self) -> Identity:
        code, redirect_uri = self._wait_for_oauth_code()
        resp = self.api.request("POST", "/auth/oauth/token",
                                json={"code": code, "redirect_uri": redirect_uri})
        return self._start_session(resp.json()["access_token"])

    def sign_out(self):
        self.api.token = None
        if self._user is not None:
            self._set_user(None)

    def send_email_verification(self):
        if not self.api.token:
            raise ProviderError("No user is currently signed in")
        self.api.request("POST", "/auth/verification/send",
                         json={"continue_url": self.settings.VERIFICATION_CONTINUE_URL})

    def send_password_reset(self, email: str):
        self.api.request("POST", "/auth/password-reset/send", json={"email": email})

    def update_profile(self, display_name: Optional[str] = None,
                       photo_url: Optional[str] = None) -> Identity:
        if not self.api.token:
            raise ProviderError("No user is currently signed in")
        changes = {k: v for k, v in (("display_name", display_name), ("photo_url", photo_url))
                   if v is not None}
        user = Identity(**self.api.request("PATCH", "/auth/me", json=changes).json())
        with self._lock:
            self._user = user
        return user


class HttpDocumentStore(DocumentStore):
    """Credential documents of the signed-in user.

    The server scopes every call by the bearer token, so ``uid`` only names
    the collection for logging.
    """

    def __init__(self, api: ApiClient, settings: ClientSettings):
        self.api = api
        self.prefix = f"{settings.API_V1_STR}/credentials"
        self.poll_interval = settings.POLL_INTERVAL

    def _request(self, method: str, path: str = "", **kwargs) -> requests.Response:
        return self.api.request(method, f"{self.prefix}{path}", errors=store_error,
                                transport_error=RemoteUnavailable, **kwargs)

    def list(self, uid: str) -> list[dict[str, Any]]:
        return self._request("GET").json()

    def get(self, uid: str, doc_id: str) -> dict[str, Any]:
        return self._request("GET", f"/{doc_id}").json()

    def create(self, uid: str, data: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", json=data).json()

    def update(self, uid: str, doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return self._request("PATCH", f"/{doc_id}", json=data).json()

    def delete(self, uid: str, doc_id: str):
        try:
            self._request("DELETE", f"/{doc_id}")
        except NotFound:
            logger.debug("Credential %s was already gone", doc_id)

    def revision(self) -> int:
        return self._request("GET", "/revision").json()["revision"]

    def watch(self, uid: str, on_snapshot: SnapshotListener,
              on_error: ErrorListener) -> Unsubscribe:
        stop = threading.Event()

        def poll():
            last_revision = None
            failing = False
            while not stop.is_set():
                try:
                    revision = self.revision()
                    if revision != last_revision:
                        docs = self.list(uid)
                        if stop.is_set():
                            return
                        on_snapshot(docs)
                        last_revision = revision
                    failing = False
                except PassVaultError as exc:
                    # Report an outage once, not on every poll
                    if not failing:
                        logger.warning("Live subscription for %s failed: %s", uid, exc)
                        on_error(exc)
                    failing = True
                except Exception:
                    # A listener bug must not end the subscription without a word
                    if not failing:
                        logger.exception("Live subscription for %s failed", uid)
                        on_error(RemoteUnavailable(code="SUBSCRIPTION_FAILED"))
                    failing = True
                stop.wait(self.poll_interval)

        thread = threading.Thread(target=poll, name=f"credentials-watch-{uid}", daemon=True)
        thread.start()
        return stop.set
