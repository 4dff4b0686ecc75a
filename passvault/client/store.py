import logging
import threading
from typing import Callable, List

from passvault.core import filters
from passvault.core.errors import PassVaultError
from passvault.core.models import CredentialDraft, CredentialPatch, CredentialRecord, normalize_record

from .backend import DocumentStore, Unsubscribe

logger = logging.getLogger(__name__)


class Subscription:
    """Handle returned by ``CredentialStore.subscribe``; call it to release."""

    def __init__(self, unsubscribe: Unsubscribe):
        self._unsubscribe = unsubscribe
        self._lock = threading.Lock()
        self.active = True

    def __call__(self):
        with self._lock:
            if not self.active:
                logger.debug("Subscription already released")
                return
            self.active = False
        self._unsubscribe()


class CredentialStore:
    """Credential records of one identity, read and written through a DocumentStore.

    Every document coming back from the backend goes through
    ``normalize_record`` so older shapes look like current ones.
    """

    def __init__(self, documents: DocumentStore, uid: str):
        self.documents = documents
        self.uid = uid

    def list(self) -> list[CredentialRecord]:
        records = [normalize_record(d) for d in self.documents.list(self.uid)]
        records.sort(key=_updated_key, reverse=True)
        return records

    def get(self, record_id: str) -> CredentialRecord:
        return normalize_record(self.documents.get(self.uid, record_id))

    def create(self, draft: CredentialDraft) -> CredentialRecord:
        draft.validate_required()
        record = normalize_record(self.documents.create(self.uid, draft.to_document()))
        logger.info("Created credential %s", record.id)
        return record

    def update(self, record_id: str, patch: CredentialPatch) -> CredentialRecord:
        changes = patch.changes()
        record = normalize_record(self.documents.update(self.uid, record_id, changes))
        logger.info("Updated credential %s (%s)", record_id, ", ".join(sorted(changes)) or "touch")
        return record

    def delete(self, record_id: str):
        self.documents.delete(self.uid, record_id)
        logger.info("Deleted credential %s", record_id)

    def toggle_favorite(self, record_id: str, current_value: bool) -> bool:
        # Writes the negation of what the caller saw; concurrent toggles may race.
        new_value = not current_value
        self.documents.update(self.uid, record_id, {"favorite": new_value})
        return new_value

    def subscribe(self, on_change: Callable[[List[CredentialRecord]], None],
                  on_error: Callable[[PassVaultError], None]) -> Subscription:
        def on_snapshot(documents):
            records = [normalize_record(d) for d in documents]
            records.sort(key=_updated_key, reverse=True)
            on_change(records)

        return Subscription(self.documents.watch(self.uid, on_snapshot, on_error))

    # --- client-side queries ---

    def search(self, term: str) -> List[CredentialRecord]:
        return filters.filter_records(self.list(), query=term)

    def list_by_category(self, category: str) -> List[CredentialRecord]:
        return filters.filter_records(self.list(), category=category)

    def list_favorites(self) -> List[CredentialRecord]:
        return filters.filter_records(self.list(), favorites_only=True)


def _updated_key(record: CredentialRecord) -> float:
    return record.updated_at.timestamp() if record.updated_at else 0.0
