"""Typed events and the single consumer-owned channel they travel on.

Producers (the session gate, live subscriptions) only publish. The consumer,
normally the UI event pump, pulls events one at a time, so no callback ever
re-enters the code that produced it.
"""
import queue
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union

from .errors import PassVaultError
from .models import CredentialRecord, Identity


class SessionStatus(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class SessionChanged:
    status: SessionStatus
    identity: Optional[Identity] = None


@dataclass(frozen=True)
class CredentialsSnapshot:
    records: tuple[CredentialRecord, ...]
    uid: Optional[str] = None


@dataclass(frozen=True)
class ErrorEvent:
    error: PassVaultError
    source: str


Event = Union[SessionChanged, CredentialsSnapshot, ErrorEvent]

_CLOSED = object()


class EventChannel:
    def __init__(self):
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: Event):
        if self._closed:
            return
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Next event, or None once the channel is closed or the wait times out."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            # Let other waiting consumers see the sentinel too
            self._queue.put(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    def drain(self) -> list[Event]:
        events = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return events
            if item is _CLOSED:
                self._queue.put(_CLOSED)
                return events
            events.append(item)

    def close(self):
        if not self._closed:
            self._closed = True
            self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[Event]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event
