from __future__ import annotations

import hashlib
from datetime import datetime

from campaign_dispatcher.schemas.entries import ContentEntry

IDEMPOTENCY_KEY_LENGTH = 24
CAMPAIGN_TITLE_PREFIX = "News #"


def latest_timestamp(entry: ContentEntry) -> datetime | None:
    stamps = [stamp for stamp in (entry.updated_at, entry.published_at, entry.created_at) if stamp is not None]
    return max(stamps) if stamps else None


def compute_idempotency_key(entry: ContentEntry) -> str:
    """Stable key for one entry state; it changes only when a timestamp moves."""
    stamp = latest_timestamp(entry)
    seed = f"{entry.identity}:{stamp.isoformat() if stamp else ''}"
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:IDEMPOTENCY_KEY_LENGTH]


def campaign_identity_marker(document_id: str) -> str:
    # Trailing space keeps "News #1 " from matching "News #12 ".
    return f"{CAMPAIGN_TITLE_PREFIX}{document_id} "


def campaign_title(entry: ContentEntry, idempotency_key: str) -> str:
    return f"{campaign_identity_marker(entry.identity)}- {entry.title or 'Update'} | {idempotency_key}"


def campaign_matches(title: str | None, document_id: str, idempotency_key: str) -> bool:
    if not title:
        return False
    return campaign_identity_marker(document_id) in title or idempotency_key in title
