from datetime import datetime, timezone

from campaign_dispatcher.schemas.entries import ContentEntry, MediaReference, parse_timestamp


def test_from_strapi_flattens_v4_attributes() -> None:
    data = {
        "id": 3,
        "attributes": {
            "title": "Ore Discovery",
            "short_description": "<p>Short</p>",
            "description": "Long body",
            "publishedAt": "2025-03-01T10:00:00.000Z",
            "updatedAt": "2025-03-01T10:00:00.000Z",
            "mailSent": True,
            "news_categories": {
                "data": [
                    {"id": 9, "attributes": {"slug": "corporate-news", "category": "Corporate News"}},
                ]
            },
            "image": {
                "data": {
                    "id": 11,
                    "attributes": {
                        "url": "/uploads/ore.jpg",
                        "formats": {"small": {"url": "/uploads/small_ore.jpg"}},
                    },
                }
            },
        },
    }

    entry = ContentEntry.from_strapi(data)

    assert entry.identity == "3"
    assert entry.title == "Ore Discovery"
    assert entry.excerpt == "<p>Short</p>"
    assert entry.body == "Long body"
    assert entry.notified is True
    assert entry.is_published
    assert [ref.normalized_slug for ref in entry.category_refs] == ["corporate-news"]
    assert entry.category_refs[0].name == "Corporate News"
    assert entry.cover is not None
    assert entry.cover.resolve_url("https://cms.example.com") == "https://cms.example.com/uploads/small_ore.jpg"


def test_from_strapi_reads_v5_flat_shape() -> None:
    data = {
        "id": 5,
        "documentId": "abc123",
        "title": "Flat",
        "excerpt": "Fallback excerpt",
        "publishedAt": None,
        "news_categories": [{"id": 1, "slug": "Local-News"}],
        "cover": "https://cdn.example.com/cover.png",
    }

    entry = ContentEntry.from_strapi(data)

    assert entry.identity == "abc123"
    assert entry.excerpt == "Fallback excerpt"
    assert not entry.is_published
    assert entry.notified is False
    assert entry.category_refs[0].normalized_slug == "local-news"
    assert entry.cover.resolve_url("https://cms.example.com") == "https://cdn.example.com/cover.png"


def test_notified_requires_literal_true() -> None:
    assert ContentEntry.from_strapi({"documentId": "A1", "mailSent": "true"}).notified is False
    assert ContentEntry.from_strapi({"documentId": "A1", "sent": True}, notified_field="sent").notified is True


def test_media_prefers_largest_format() -> None:
    media = MediaReference.from_raw(
        {
            "url": "/uploads/original.jpg",
            "formats": {
                "thumbnail": {"url": "/uploads/thumb.jpg"},
                "medium": {"url": "/uploads/medium.jpg"},
                "large": {"url": "/uploads/large.jpg"},
            },
        }
    )
    assert media.resolve_url("https://cms.example.com/") == "https://cms.example.com/uploads/large.jpg"


def test_media_protocol_relative_and_missing() -> None:
    assert MediaReference(url="//cdn.example.com/a.jpg").resolve_url("https://x") == "https://cdn.example.com/a.jpg"
    assert MediaReference(url="/uploads/a.jpg").resolve_url(None) == "/uploads/a.jpg"
    assert MediaReference.from_raw({"data": None}) is None
    assert MediaReference.from_raw([]) is None
    assert MediaReference.from_raw({"alternativeText": "no url"}) is None
    assert MediaReference.from_raw("   ") is None


def test_parse_timestamp_normalises_to_utc() -> None:
    assert parse_timestamp("2025-03-01T10:00:00Z") == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert parse_timestamp("2025-03-01T12:00:00+02:00") == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert parse_timestamp(datetime(2025, 3, 1, 10, 0)) == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert parse_timestamp("not-a-date") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None
