import logging
import threading
from typing import Callable, Optional

from passvault.core.events import (CredentialsSnapshot, ErrorEvent, Event, EventChannel,
                                   SessionChanged, SessionStatus)
from passvault.core.models import CredentialRecord, Identity

from .backend import DocumentStore, IdentityProvider
from .config import ClientSettings
from .session import SessionGate
from .store import CredentialStore, Subscription

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


def create_backend(settings: ClientSettings) -> tuple[IdentityProvider, DocumentStore]:
    if settings.BACKEND == "memory":
        from .memory_backend import InMemoryDocumentStore, InMemoryIdentityProvider
        provider = InMemoryIdentityProvider(oauth_email=settings.OFFLINE_OAUTH_EMAIL,
                                            auto_verify=settings.OFFLINE_AUTO_VERIFY)
        return provider, InMemoryDocumentStore()

    from .http_backend import ApiClient, HttpDocumentStore, HttpIdentityProvider
    api = ApiClient(settings)
    return HttpIdentityProvider(api, settings), HttpDocumentStore(api, settings)


class AppContext:
    """Everything one running client owns, created at start-up and closed at shutdown.

    The gate and live subscriptions publish onto ``channel``; whoever drives
    the UI pulls events off it and hands each one to ``apply``.
    """

    def __init__(self, settings: ClientSettings, provider: IdentityProvider,
                 documents: DocumentStore):
        self.settings = settings
        self.provider = provider
        self.documents = documents
        self.channel = EventChannel()
        self.session = SessionGate(provider, self.channel)
        self.store: Optional[CredentialStore] = None
        self.records: tuple[CredentialRecord, ...] = ()
        self.last_error: Optional[ErrorEvent] = None
        self._subscription: Optional[Subscription] = None
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "AppContext":
        provider, documents = create_backend(settings)
        return cls(settings, provider, documents)

    @property
    def identity(self) -> Optional[Identity]:
        return self.session.identity

    def start(self):
        logger.info("Starting client (%s backend)", self.settings.BACKEND)
        self.session.start()

    def close(self):
        self._close_store()
        self.session.close()
        self.channel.close()
        logger.info("Client stopped")

    def __enter__(self) -> "AppContext":
        self.start()
        return self

    def __exit__(self, *exc_info):
        self.close()

    # --- listeners for the UI ---

    def add_listener(self, listener: Listener):
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # --- event handling ---

    def apply(self, event: Event):
        if isinstance(event, SessionChanged):
            if event.status == SessionStatus.AUTHENTICATED and event.identity is not None:
                self._open_store(event.identity)
            elif event.status == SessionStatus.UNAUTHENTICATED:
                self._close_store()
        elif isinstance(event, CredentialsSnapshot):
            # Snapshots from a store that was closed meanwhile are stale
            if self.store is not None and event.uid in (None, self.store.uid):
                self.records = event.records
                self.last_error = None
        elif isinstance(event, ErrorEvent):
            self.last_error = event

        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)

    def process_pending(self) -> list[Event]:
        """Apply everything already on the channel without blocking."""
        events = self.channel.drain()
        for event in events:
            self.apply(event)
        return events

    def run(self):
        """Blocking event pump; returns once the channel is closed."""
        for event in self.channel:
            self.apply(event)

    def resubscribe(self):
        """Retry affordance after a failed load."""
        identity = self.session.identity
        if identity is None:
            return
        self._close_store()
        self._open_store(identity)

    def _open_store(self, identity: Identity):
        with self._lock:
            if self.store is not None and self.store.uid == identity.uid:
                return
        self._close_store()
        store = CredentialStore(self.documents, identity.uid)
        with self._lock:
            self.store = store
        self._subscription = store.subscribe(
            lambda records: self.channel.publish(CredentialsSnapshot(tuple(records), identity.uid)),
            lambda error: self.channel.publish(ErrorEvent(error, "credentials")),
        )

    def _close_store(self):
        with self._lock:
            subscription, self._subscription = self._subscription, None
            self.store = None
            self.records = ()
        if subscription is not None:
            subscription()
