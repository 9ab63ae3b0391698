from __future__ import annotations

from typing import Any

import pytest

from campaign_dispatcher.core.config import Settings
from campaign_dispatcher.schemas.entries import CategoryRef, ContentEntry
from campaign_dispatcher.services.content_store import ContentStoreError, ContentStoreNotFoundError


class FakeContentStore:
    def __init__(
        self,
        *,
        entries: dict[str, ContentEntry] | None = None,
        categories: dict[str, list[str]] | None = None,
        fail_categories: bool = False,
        fail_mark: bool = False,
    ) -> None:
        self.entries = entries or {}
        self.categories = categories or {}
        self.fail_categories = fail_categories
        self.fail_mark = fail_mark
        self.marked: list[str] = []
        self.category_lookups: list[str] = []

    async def get_entry(self, document_id: str) -> ContentEntry:
        entry = self.entries.get(document_id)
        if entry is None:
            raise ContentStoreNotFoundError(f"entry not found: {document_id}")
        return entry

    async def fetch_categories(self, document_id: str) -> list[CategoryRef]:
        self.category_lookups.append(document_id)
        if self.fail_categories:
            raise ContentStoreError("content api unavailable")
        return [CategoryRef(slug=slug) for slug in self.categories.get(document_id, [])]

    async def mark_notified(self, document_id: str) -> None:
        if self.fail_mark:
            raise ContentStoreError("content api returned 500")
        self.marked.append(document_id)


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "mailchimp_api_key": "key-us21",
        "mailchimp_server_prefix": "us21",
        "mailchimp_audience_id": "aud-1",
        "mailchimp_retry_base_seconds": 0.0,
        "public_site_url": "https://news.example.com",
        "strapi_url": "http://cms.test",
        "otel_enabled": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_entry(**overrides: Any) -> ContentEntry:
    values: dict[str, Any] = {
        "id": 7,
        "document_id": "A1",
        "title": "Ore Discovery",
        "excerpt": "<p>Drill results are in.</p>",
        "body": "Assays returned 12 g/t gold over 30 metres.",
        "published_at": "2025-03-01T10:00:00Z",
        "updated_at": "2025-03-01T10:00:00Z",
        "created_at": "2025-02-28T09:00:00Z",
    }
    values.update(overrides)
    return ContentEntry(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def entry() -> ContentEntry:
    return make_entry()
