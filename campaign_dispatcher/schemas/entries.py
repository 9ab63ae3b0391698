from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

MEDIA_FORMAT_PREFERENCE = ("large", "medium", "small", "thumbnail")
MEDIA_FIELDS = ("cover", "image", "hero")


class MediaReference(BaseModel):
    url: str | None = None
    formats: dict[str, str] = Field(default_factory=dict)
    alternative_text: str | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> MediaReference | None:
        """Build a reference from any media shape the CMS returns, or None when there is no usable URL."""
        raw = _unwrap(raw)
        if isinstance(raw, list):
            raw = _unwrap(raw[0]) if raw else None
        if isinstance(raw, str):
            stripped = raw.strip()
            return cls(url=stripped) if stripped else None
        if not isinstance(raw, dict):
            return None

        formats: dict[str, str] = {}
        raw_formats = raw.get("formats")
        if isinstance(raw_formats, dict):
            for name, value in raw_formats.items():
                if isinstance(value, dict) and _as_text(value.get("url")):
                    formats[name] = value["url"].strip()

        url = _as_text(raw.get("url"))
        if url is None and not formats:
            return None
        return cls(
            url=url,
            formats=formats,
            alternative_text=_as_text(raw.get("alternativeText")),
        )

    def resolve_url(self, media_base_url: str | None = None) -> str | None:
        candidate = next((self.formats[name] for name in MEDIA_FORMAT_PREFERENCE if name in self.formats), None)
        candidate = candidate or self.url
        if not candidate:
            return None
        if candidate.startswith("//"):
            return f"https:{candidate}"
        if candidate.startswith(("http://", "https://")) or not media_base_url:
            return candidate
        return f"{media_base_url.rstrip('/')}/{candidate.lstrip('/')}"


class CategoryRef(BaseModel):
    id: int | str | None = None
    slug: str | None = None
    name: str | None = None

    @property
    def normalized_slug(self) -> str:
        return (self.slug or self.name or "").strip().lower()

    @classmethod
    def from_raw(cls, raw: Any) -> CategoryRef | None:
        raw = _unwrap(raw)
        if not isinstance(raw, dict):
            return None
        return cls(
            id=raw.get("id"),
            slug=_as_text(raw.get("slug")),
            name=_as_text(raw.get("category")) or _as_text(raw.get("name")),
        )


class ContentEntry(BaseModel):
    id: int | str | None = None
    document_id: str | None = None
    title: str = ""
    excerpt: str = ""
    body: str = ""
    author: str | None = None
    cover: MediaReference | None = None
    published_at: datetime | None = None
    updated_at: datetime | None = None
    created_at: datetime | None = None
    category_refs: list[CategoryRef] = Field(default_factory=list)
    notified: bool = False

    @property
    def identity(self) -> str:
        if self.document_id:
            return self.document_id
        return "" if self.id is None else str(self.id)

    @property
    def is_published(self) -> bool:
        return self.published_at is not None

    @classmethod
    def from_strapi(
        cls,
        data: dict[str, Any],
        *,
        category_relation: str = "news_categories",
        notified_field: str = "mailSent",
    ) -> ContentEntry:
        """Flatten a Strapi v4 (``attributes``) or v5 entry into a ContentEntry."""
        attributes = data.get("attributes")
        flat: dict[str, Any] = {**data, **attributes} if isinstance(attributes, dict) else dict(data)

        cover = None
        for field in MEDIA_FIELDS:
            cover = MediaReference.from_raw(flat.get(field))
            if cover is not None:
                break

        raw_categories = _unwrap(flat.get(category_relation))
        categories: list[CategoryRef] = []
        if isinstance(raw_categories, list):
            categories = [ref for ref in (CategoryRef.from_raw(item) for item in raw_categories) if ref is not None]

        document_id = flat.get("documentId") or _nested_id(flat.get("document"))
        return cls(
            id=flat.get("id"),
            document_id=str(document_id) if document_id else None,
            title=_as_text(flat.get("title")) or "",
            excerpt=_as_text(flat.get("short_description")) or _as_text(flat.get("excerpt")) or "",
            body=_as_text(flat.get("description")) or "",
            author=_as_text(flat.get("author")),
            cover=cover,
            published_at=parse_timestamp(flat.get("publishedAt")),
            updated_at=parse_timestamp(flat.get("updatedAt")),
            created_at=parse_timestamp(flat.get("createdAt")),
            category_refs=categories,
            notified=flat.get(notified_field) is True,
        )


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _unwrap(value: Any) -> Any:
    # Strapi v4 wraps relations and media as {"data": {"id": .., "attributes": {..}}}.
    if isinstance(value, dict) and "data" in value and len(value) <= 2:
        value = value["data"]
    if isinstance(value, list):
        return [_unwrap_item(item) for item in value]
    return _unwrap_item(value)


def _unwrap_item(value: Any) -> Any:
    if isinstance(value, dict) and isinstance(value.get("attributes"), dict):
        return {"id": value.get("id"), **value["attributes"]}
    return value


def _nested_id(value: Any) -> str | None:
    if isinstance(value, dict) and value.get("id") is not None:
        return str(value["id"])
    return None


def _as_text(value: Any) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None
