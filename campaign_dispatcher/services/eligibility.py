from __future__ import annotations

import logging
from collections.abc import Iterable

from campaign_dispatcher.schemas.entries import ContentEntry
from campaign_dispatcher.services.content_store import ContentStore

logger = logging.getLogger(__name__)


class CategoryEligibilityFilter:
    def __init__(self, store: ContentStore, allowed_slugs: Iterable[str]) -> None:
        self.store = store
        self.allowed_slugs = frozenset(slug.strip().lower() for slug in allowed_slugs if slug.strip())

    async def is_eligible(self, entry: ContentEntry) -> bool:
        """True when any related category is allow-listed; fetch failures count as not eligible."""
        document_id = entry.identity
        try:
            categories = await self.store.fetch_categories(document_id)
        except Exception as exc:
            logger.warning("category lookup failed document_id=%s: %s", document_id, exc)
            return False

        slugs = {category.normalized_slug for category in categories if category.normalized_slug}
        if not slugs:
            logger.info("entry has no categories document_id=%s", document_id)
            return False

        matched = slugs & self.allowed_slugs
        if not matched:
            logger.info(
                "entry not eligible document_id=%s categories=%s",
                document_id,
                ",".join(sorted(slugs)),
            )
            return False
        return True
