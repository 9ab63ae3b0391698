from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from campaign_dispatcher.core.config import Settings
from campaign_dispatcher.schemas.entries import CategoryRef, ContentEntry

logger = logging.getLogger(__name__)


class ContentStoreError(Exception):
    """Raised when the CMS cannot be read or written."""


class ContentStoreNotFoundError(ContentStoreError):
    """Raised when the requested entry does not exist."""


class ContentStore(Protocol):
    async def get_entry(self, document_id: str) -> ContentEntry: ...

    async def fetch_categories(self, document_id: str) -> list[CategoryRef]: ...

    async def mark_notified(self, document_id: str) -> None: ...


class StrapiContentStore:
    """Reads entries from and writes the notified flag to the Strapi REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None,
        content_type: str,
        category_relation: str,
        notified_field: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.content_type = content_type.strip("/")
        self.category_relation = category_relation
        self.notified_field = notified_field
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.headers = {"Accept": "application/json"}
        if api_token:
            self.headers["Authorization"] = f"Bearer {api_token}"

    @classmethod
    def from_settings(cls, settings: Settings) -> StrapiContentStore:
        return cls(
            settings.strapi_url,
            api_token=settings.strapi_api_token,
            content_type=settings.strapi_content_type,
            category_relation=settings.strapi_category_relation,
            notified_field=settings.strapi_notified_field,
            timeout_seconds=settings.strapi_timeout_seconds,
        )

    async def get_entry(self, document_id: str) -> ContentEntry:
        payload = await self._request(
            "GET",
            document_id,
            params={"populate[0]": self.category_relation, "populate[1]": "image"},
        )
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ContentStoreNotFoundError(f"entry not found: {document_id}")
        return ContentEntry.from_strapi(
            data,
            category_relation=self.category_relation,
            notified_field=self.notified_field,
        )

    async def fetch_categories(self, document_id: str) -> list[CategoryRef]:
        relation = self.category_relation
        payload = await self._request(
            "GET",
            document_id,
            params={
                f"populate[{relation}][fields][0]": "slug",
                f"populate[{relation}][fields][1]": "category",
            },
        )
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ContentStoreNotFoundError(f"entry not found: {document_id}")
        entry = ContentEntry.from_strapi(data, category_relation=self.category_relation)
        return entry.category_refs

    async def mark_notified(self, document_id: str) -> None:
        await self._request("PUT", document_id, json={"data": {self.notified_field: True}})
        logger.info("notified flag persisted document_id=%s field=%s", document_id, self.notified_field)

    async def _request(
        self,
        method: str,
        document_id: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/api/{self.content_type}/{document_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.request(method, url, params=params, json=json, headers=self.headers)
        except httpx.HTTPError as exc:
            raise ContentStoreError(f"content api unavailable: {exc}") from exc

        if response.status_code == 404:
            raise ContentStoreNotFoundError(f"entry not found: {document_id}")
        if response.status_code >= 400:
            raise ContentStoreError(f"content api returned {response.status_code} for {method} {document_id}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ContentStoreError("content api returned invalid json") from exc
        return payload if isinstance(payload, dict) else {}
