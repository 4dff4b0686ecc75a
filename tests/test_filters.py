import pytest

from passvault.core.filters import ALL_CATEGORIES, categories, filter_records
from passvault.core.models import normalize_record


@pytest.fixture
def records():
    return [
        normalize_record({"id": "1", "title": "GitHub", "username": "octo",
                          "category": "Work", "favorite": True}),
        normalize_record({"id": "2", "title": "Bank", "email": "me@bank.example",
                          "category": "Finance"}),
        normalize_record({"id": "3", "title": "Forum", "website": "https://forum.example",
                          "category": "Work"}),
    ]


class TestFilterRecords:
    def test_no_filters(self, records):
        assert filter_records(records) == records

    def test_query_is_case_insensitive(self, records):
        assert [r.id for r in filter_records(records, "GITHUB")] == ["1"]

    def test_query_matches_username_email_and_website(self, records):
        assert [r.id for r in filter_records(records, "octo")] == ["1"]
        assert [r.id for r in filter_records(records, "bank.example")] == ["2"]
        assert [r.id for r in filter_records(records, "forum.example")] == ["3"]

    def test_category(self, records):
        assert [r.id for r in filter_records(records, category="Work")] == ["1", "3"]

    def test_favorites_only(self, records):
        assert [r.id for r in filter_records(records, favorites_only=True)] == ["1"]

    def test_combined(self, records):
        assert filter_records(records, "forum", "Work", favorites_only=True) == []


def test_categories_keep_first_seen_order(records):
    assert categories(records) == [ALL_CATEGORIES, "Work", "Finance"]
