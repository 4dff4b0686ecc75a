from unittest.mock import patch

import pytest

from passvault.client.store import CredentialStore
from passvault.core.errors import NotFound, RemoteUnavailable, ValidationError
from passvault.core.models import CredentialDraft, CredentialPatch

UID = "user-1"


@pytest.fixture
def store(documents) -> CredentialStore:
    return CredentialStore(documents, UID)


def draft(title="GitHub", password="s3cret!", **kwargs) -> CredentialDraft:
    return CredentialDraft(title=title, password=password, **kwargs)


class TestCreate:
    def test_defaults(self, store):
        record = store.create(draft(username="octo"))
        assert record.id
        assert record.favorite is False
        assert record.category == "Personal"
        assert record.created_at is not None
        assert record.created_at == record.updated_at

    def test_missing_title_makes_no_remote_call(self, store, documents):
        with patch.object(documents, "create", wraps=documents.create) as create:
            with pytest.raises(ValidationError, match="Title is required"):
                store.create(draft(title="  "))
            create.assert_not_called()

    def test_missing_password_makes_no_remote_call(self, store, documents):
        with patch.object(documents, "create", wraps=documents.create) as create:
            with pytest.raises(ValidationError, match="Password is required"):
                store.create(draft(password=""))
            create.assert_not_called()

    def test_remote_unavailable(self, store, documents):
        documents.available = False
        with pytest.raises(RemoteUnavailable):
            store.create(draft())


class TestListAndGet:
    def test_newest_first(self, store):
        first = store.create(draft(title="first"))
        second = store.create(draft(title="second"))
        assert [r.id for r in store.list()] == [second.id, first.id]
        store.update(first.id, CredentialPatch(notes="touched"))
        assert [r.id for r in store.list()] == [first.id, second.id]

    def test_other_users_are_invisible(self, store, documents):
        store.create(draft())
        assert CredentialStore(documents, "someone-else").list() == []

    def test_get(self, store):
        record = store.create(draft())
        assert store.get(record.id) == record

    def test_get_missing(self, store):
        with pytest.raises(NotFound):
            store.get("nope")

    def test_legacy_documents_are_normalized(self, store, documents):
        documents.create(UID, {"title": "Old", "password": "pw", "isFavorite": True,
                               "url": "https://old.example", "notes": None})
        record, = store.list()
        assert record.favorite is True
        assert record.website == "https://old.example"
        assert record.notes == ""
        assert record.category == "Personal"

    def test_list_unavailable(self, store, documents):
        documents.available = False
        with pytest.raises(RemoteUnavailable):
            store.list()


class TestUpdate:
    def test_merges_only_given_fields(self, store):
        record = store.create(draft(username="octo"))
        updated = store.update(record.id, CredentialPatch(password="n3w!"))
        assert updated.password == "n3w!"
        assert updated.username == "octo"
        assert updated.created_at == record.created_at
        assert updated.updated_at > record.updated_at

    def test_missing(self, store):
        with pytest.raises(NotFound):
            store.update("nope", CredentialPatch(notes="x"))

    def test_blank_title_rejected_before_remote_call(self, store, documents):
        record = store.create(draft())
        with patch.object(documents, "update", wraps=documents.update) as update:
            with pytest.raises(ValidationError):
                store.update(record.id, CredentialPatch(title=""))
            update.assert_not_called()


class TestDelete:
    def test_create_then_delete(self, store):
        record = store.create(draft())
        store.delete(record.id)
        assert record.id not in [r.id for r in store.list()]

    def test_missing_is_silent(self, store):
        store.delete("nope")


class TestToggleFavorite:
    def test_writes_negation(self, store):
        record = store.create(draft())
        assert store.toggle_favorite(record.id, record.favorite) is True
        assert store.get(record.id).favorite is True
        assert store.toggle_favorite(record.id, True) is False
        assert store.get(record.id).favorite is False


class TestSubscribe:
    def test_snapshots(self, store):
        snapshots, errors = [], []
        subscription = store.subscribe(snapshots.append, errors.append)
        assert snapshots == [[]]
        record = store.create(draft())
        assert [r.id for r in snapshots[-1]] == [record.id]
        subscription()
        store.create(draft(title="after"))
        assert len(snapshots) == 2
        assert errors == []

    def test_unsubscribe_twice_is_a_no_op(self, store):
        subscription = store.subscribe(lambda records: None, lambda error: None)
        subscription()
        assert not subscription.active
        subscription()

    def test_error_callback(self, store, documents):
        documents.available = False
        snapshots, errors = [], []
        store.subscribe(snapshots.append, errors.append)
        assert snapshots == []
        assert isinstance(errors[0], RemoteUnavailable)


class TestQueries:
    def test_search_category_and_favorites(self, store):
        github = store.create(draft(title="GitHub", category="Work"))
        bank = store.create(draft(title="Bank", category="Finance"))
        store.toggle_favorite(bank.id, False)
        assert [r.id for r in store.search("git")] == [github.id]
        assert [r.id for r in store.list_by_category("Finance")] == [bank.id]
        assert [r.id for r in store.list_favorites()] == [bank.id]
