from typing import Iterable

from .models import CredentialRecord

ALL_CATEGORIES = "all"


def matches_query(record: CredentialRecord, query: str) -> bool:
    query = query.strip().lower()
    if not query:
        return True
    return any(query in value.lower()
               for value in (record.title, record.username, record.email, record.website))


def filter_records(records: Iterable[CredentialRecord],
                   query: str = "",
                   category: str = ALL_CATEGORIES,
                   favorites_only: bool = False) -> list[CredentialRecord]:
    return [
        r for r in records
        if matches_query(r, query)
        and (category == ALL_CATEGORIES or r.category == category)
        and (r.favorite or not favorites_only)
    ]


def categories(records: Iterable[CredentialRecord]) -> list[str]:
    seen = [ALL_CATEGORIES]
    for r in records:
        if r.category and r.category not in seen:
            seen.append(r.category)
    return seen
