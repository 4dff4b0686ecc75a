import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session
from sqlmodel.pool import StaticPool

from passvault.client.config import ClientSettings
from passvault.client.memory_backend import InMemoryDocumentStore, InMemoryIdentityProvider
from passvault.client.session import SessionGate
from passvault.client.state import AppContext
from passvault.core.events import EventChannel
from passvault.server.config import settings as server_settings_obj
from passvault.server.database import create_db_engine, get_session, init_db
from passvault.server.mailer import DevMailer, get_mailer
from passvault.server.main import app

VERIFIED_EMAIL = "alice@example.com"
UNVERIFIED_EMAIL = "bob@example.com"
PASSWORD = "correct-horse-battery"


# ── client side ────────────────────────────────────────────────────────────


@pytest.fixture
def provider() -> InMemoryIdentityProvider:
    p = InMemoryIdentityProvider(oauth_email="oauth@example.com")
    p.add_user(VERIFIED_EMAIL, PASSWORD, display_name="Alice", email_verified=True)
    p.add_user(UNVERIFIED_EMAIL, PASSWORD)
    return p


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def channel() -> EventChannel:
    return EventChannel()


@pytest.fixture
def gate(provider, channel):
    g = SessionGate(provider, channel)
    g.start()
    yield g
    g.close()


@pytest.fixture
def client_settings() -> ClientSettings:
    return ClientSettings(BACKEND="memory", _env_file=None)


@pytest.fixture
def ctx(client_settings, provider, documents):
    context = AppContext(client_settings, provider, documents)
    with context:
        yield context


def pump(context: AppContext) -> list:
    """Apply events until the channel is quiet (applying can publish more)."""
    applied = []
    while True:
        events = context.process_pending()
        if not events:
            return applied
        applied.extend(events)


# ── development server ─────────────────────────────────────────────────────


@pytest.fixture
def server_settings(monkeypatch):
    monkeypatch.setattr(server_settings_obj, "PASSWORD_HASH_ITERATIONS", 1000)
    return server_settings_obj


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    return engine


@pytest.fixture
def mailer() -> DevMailer:
    return DevMailer()


@pytest.fixture
def api(engine, mailer, server_settings):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(api, email=VERIFIED_EMAIL, password=PASSWORD, display_name=None):
    return api.post("/auth/register", json={"email": email, "password": password,
                                            "display_name": display_name})


def login(api, email=VERIFIED_EMAIL, password=PASSWORD):
    return api.post("/auth/token", data={"username": email, "password": password})


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def verified_account(api, mailer, email=VERIFIED_EMAIL, password=PASSWORD) -> dict:
    """Register and verify ``email``; returns its auth headers."""
    assert register(api, email=email, password=password).status_code == 201
    headers = auth_headers(login(api, email=email, password=password).json()["access_token"])
    api.post("/auth/verification/send", json={}, headers=headers)
    token = mailer.last_for(email).token
    api.post("/auth/verification/confirm", json={"token": token})
    return headers


@pytest.fixture
def signed_in(api, mailer):
    return verified_account(api, mailer)
