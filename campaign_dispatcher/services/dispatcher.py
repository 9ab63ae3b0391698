from __future__ import annotations

import logging
from functools import lru_cache

from opentelemetry import trace

from campaign_dispatcher.core.config import Settings, get_settings
from campaign_dispatcher.schemas.events import ChangeEvent
from campaign_dispatcher.services.campaign_client import CampaignClient, build_campaign_client
from campaign_dispatcher.services.content_store import (
    ContentStore,
    ContentStoreNotFoundError,
    StrapiContentStore,
)
from campaign_dispatcher.services.eligibility import CategoryEligibilityFilter
from campaign_dispatcher.services.locks import KeyedLocks
from campaign_dispatcher.services.reconciler import (
    CampaignReconciler,
    DispatchOutcome,
    DispatchResult,
)
from campaign_dispatcher.services.renderer import CampaignRenderer
from campaign_dispatcher.services.transitions import PUBLISH_TRANSITION, classify_transition

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DispatchRejectedError(Exception):
    """Raised by manual dispatch when an entry cannot be sent."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class CampaignDispatcher:
    def __init__(
        self,
        settings: Settings,
        *,
        client: CampaignClient,
        store: ContentStore,
        renderer: CampaignRenderer | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.eligibility = CategoryEligibilityFilter(store, settings.eligible_category_slugs)
        self.reconciler = CampaignReconciler(
            settings,
            client=client,
            store=store,
            renderer=renderer or CampaignRenderer.from_settings(settings),
            locks=locks,
        )

    def log_configuration_problems(self) -> list[str]:
        missing = self.settings.missing_mailchimp_settings()
        if missing:
            logger.warning("mailchimp not configured, dispatch disabled: missing %s", ", ".join(missing))
        return missing

    async def handle_event(self, event: ChangeEvent) -> DispatchResult:
        """Run one change event through detection, eligibility and reconciliation. Never raises."""
        entry = event.entry
        document_id = entry.identity
        with tracer.start_as_current_span("dispatcher.handle_event") as span:
            span.set_attribute("event.action", event.action.value)
            span.set_attribute("entry.document_id", document_id)
            try:
                result = await self._handle(event)
            except Exception as exc:
                logger.exception("dispatch crashed document_id=%s action=%s", document_id, event.action.value)
                result = DispatchResult(
                    outcome=DispatchOutcome.FAILED,
                    reason=str(exc),
                    document_id=document_id,
                    phase="unexpected",
                )
            span.set_attribute("dispatch.outcome", result.outcome.value)
            span.set_attribute("dispatch.reason", result.reason)
            return result

    async def _handle(self, event: ChangeEvent) -> DispatchResult:
        entry = event.entry
        document_id = entry.identity

        reason = classify_transition(event)
        if reason != PUBLISH_TRANSITION:
            logger.debug(
                "no campaign for event document_id=%s action=%s reason=%s",
                document_id,
                event.action.value,
                reason,
            )
            return _skipped(reason, document_id)

        if not document_id:
            logger.warning("published entry without identity; skipping")
            return _skipped("missing_identity", document_id)

        if self.log_configuration_problems():
            return _skipped("missing_configuration", document_id)

        if not await self.eligibility.is_eligible(entry):
            return _skipped("not_eligible", document_id)

        return await self.reconciler.reconcile(entry)

    async def dispatch_manual(self, document_id: str) -> tuple[DispatchResult, str]:
        """Dispatch a stored entry on request, bypassing the transition check and the notified guard.

        Returns the result and the entry title. Raises DispatchRejectedError when
        the entry is missing, unpublished, ineligible or mailchimp is not configured.
        """
        if self.log_configuration_problems():
            raise DispatchRejectedError("missing_configuration", "Mailchimp is not configured")

        try:
            entry = await self.store.get_entry(document_id)
        except ContentStoreNotFoundError as exc:
            raise DispatchRejectedError("not_found", "News entry not found") from exc

        if not entry.is_published:
            raise DispatchRejectedError("not_published", "News must be published to send")
        if not await self.eligibility.is_eligible(entry):
            allowed = ", ".join(sorted(self.eligibility.allowed_slugs))
            raise DispatchRejectedError("not_eligible", f"Only entries in categories [{allowed}] can be sent")

        logger.info("manual dispatch requested document_id=%s", entry.identity)
        return await self.reconciler.reconcile(entry, renotify=True), entry.title


def _skipped(reason: str, document_id: str | None) -> DispatchResult:
    return DispatchResult(outcome=DispatchOutcome.SKIPPED, reason=reason, document_id=document_id or None)


@lru_cache
def get_dispatcher() -> CampaignDispatcher:
    settings = get_settings()
    return CampaignDispatcher(
        settings,
        client=build_campaign_client(settings),
        store=StrapiContentStore.from_settings(settings),
    )
