from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from opentelemetry import trace

from campaign_dispatcher.core.config import Settings
from campaign_dispatcher.core.fingerprint import campaign_matches, campaign_title, compute_idempotency_key
from campaign_dispatcher.schemas.entries import ContentEntry
from campaign_dispatcher.services.campaign_client import (
    DELIVERED_STATUSES,
    DRAFT_STATUS,
    CampaignClient,
    CampaignSpec,
    RemoteCampaignSummary,
)
from campaign_dispatcher.services.content_store import ContentStore
from campaign_dispatcher.services.locks import KeyedLocks
from campaign_dispatcher.services.renderer import CampaignRenderer

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DispatchOutcome(str, Enum):
    SKIPPED = "skipped"
    DRAFTED = "drafted"
    UPDATED = "updated"
    SENT = "sent"
    FAILED = "failed"


@dataclass(slots=True)
class DispatchResult:
    outcome: DispatchOutcome
    reason: str
    document_id: str | None = None
    campaign_id: str | None = None
    phase: str | None = None
    idempotency_key: str | None = None
    notified: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome in {DispatchOutcome.DRAFTED, DispatchOutcome.UPDATED, DispatchOutcome.SENT}


class CampaignReconciler:
    """Creates or refreshes the remote campaign for one published entry.

    Work for a single document is serialised through a per-document lock held
    from the remote lookup until the notified flag is stored. Remote failures
    are logged and reported through the result; nothing is raised to callers.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: CampaignClient,
        store: ContentStore,
        renderer: CampaignRenderer,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.store = store
        self.renderer = renderer
        self.locks = locks or KeyedLocks()
        self._notified_in_process: set[str] = set()

    async def reconcile(self, entry: ContentEntry, *, renotify: bool = False) -> DispatchResult:
        """Reconcile one entry; ``renotify`` lets an explicit request bypass the notified guard."""
        document_id = entry.identity
        with tracer.start_as_current_span("reconciler.reconcile") as span:
            span.set_attribute("entry.document_id", document_id)
            async with self.locks.hold(document_id):
                try:
                    result = await self._reconcile_locked(entry, renotify=renotify)
                except Exception as exc:
                    logger.exception("campaign reconcile crashed document_id=%s", document_id)
                    result = DispatchResult(
                        outcome=DispatchOutcome.FAILED,
                        reason=str(exc),
                        document_id=document_id,
                        phase="unexpected",
                    )
            span.set_attribute("dispatch.outcome", result.outcome.value)
            return result

    async def _reconcile_locked(self, entry: ContentEntry, *, renotify: bool) -> DispatchResult:
        document_id = entry.identity
        key = compute_idempotency_key(entry)
        html = self.renderer.render(entry)
        already_notified = not renotify and (entry.notified or document_id in self._notified_in_process)

        existing = await self._find_existing(document_id, key)
        if existing is None:
            if already_notified:
                logger.info(
                    "entry already notified and no draft campaign found; not creating another document_id=%s",
                    document_id,
                )
                return DispatchResult(
                    outcome=DispatchOutcome.SKIPPED,
                    reason="already_notified",
                    document_id=document_id,
                    idempotency_key=key,
                    notified=True,
                )
            result = await self._create(entry, key, html)
        else:
            result = await self._refresh(existing, document_id, key, html)

        if result.outcome is DispatchOutcome.FAILED:
            return result

        if entry.notified:
            result.notified = True
        else:
            await self._persist_notified(result)

        if self.settings.mailchimp_enable_send and result.campaign_id:
            await self._send(result)
        else:
            logger.info(
                "campaign left as draft campaign_id=%s document_id=%s send_enabled=%s",
                result.campaign_id,
                document_id,
                self.settings.mailchimp_enable_send,
            )
        return result

    async def _find_existing(self, document_id: str, key: str) -> RemoteCampaignSummary | None:
        audience_id = self.settings.mailchimp_audience_id or ""
        try:
            campaigns = await self.client.list_campaigns(
                list_id=audience_id,
                status=DRAFT_STATUS,
                count=self.settings.mailchimp_lookup_count,
            )
        except Exception as exc:
            # The campaign may exist; proceeding as "not found" can create a duplicate.
            logger.warning(
                "campaign lookup failed, treating as not found document_id=%s phase=lookup: %s",
                document_id,
                exc,
            )
            return None

        for campaign in campaigns:
            if campaign.list_id not in (None, audience_id):
                continue
            if campaign_matches(campaign.title, document_id, key):
                return campaign
        return None

    async def _create(self, entry: ContentEntry, key: str, html: str) -> DispatchResult:
        document_id = entry.identity
        spec = CampaignSpec(
            list_id=self.settings.mailchimp_audience_id or "",
            title=campaign_title(entry, key),
            subject_line=self.renderer.subject(entry),
            preview_text=self.renderer.preview_text(entry),
            from_name=self.settings.mailchimp_from_name,
            reply_to=self.settings.mailchimp_reply_to,
        )
        try:
            campaign_id = await self.client.create_campaign(spec)
        except Exception as exc:
            logger.error("campaign create failed document_id=%s phase=create: %s", document_id, exc)
            return self._failed(document_id, key, "create", exc)
        logger.info("created campaign campaign_id=%s document_id=%s", campaign_id, document_id)

        try:
            await self.client.set_content(campaign_id, html)
        except Exception as exc:
            logger.error(
                "campaign content failed campaign_id=%s document_id=%s phase=set_content: %s",
                campaign_id,
                document_id,
                exc,
            )
            failed = self._failed(document_id, key, "set_content", exc)
            failed.campaign_id = campaign_id
            return failed

        return DispatchResult(
            outcome=DispatchOutcome.DRAFTED,
            reason="campaign_created",
            document_id=document_id,
            campaign_id=campaign_id,
            idempotency_key=key,
        )

    async def _refresh(
        self, existing: RemoteCampaignSummary, document_id: str, key: str, html: str
    ) -> DispatchResult:
        try:
            await self.client.set_content(existing.id, html)
        except Exception as exc:
            logger.error(
                "campaign content update failed campaign_id=%s document_id=%s phase=update_content: %s",
                existing.id,
                document_id,
                exc,
            )
            failed = self._failed(document_id, key, "update_content", exc)
            failed.campaign_id = existing.id
            return failed
        logger.info("updated content campaign_id=%s document_id=%s", existing.id, document_id)
        return DispatchResult(
            outcome=DispatchOutcome.UPDATED,
            reason="campaign_updated",
            document_id=document_id,
            campaign_id=existing.id,
            idempotency_key=key,
        )

    async def _persist_notified(self, result: DispatchResult) -> None:
        document_id = result.document_id or ""
        try:
            await self.store.mark_notified(document_id)
        except Exception as exc:
            logger.error("notified flag not stored document_id=%s phase=persist_flag: %s", document_id, exc)
            result.reason = "flag_persist_failed"
            result.phase = "persist_flag"
            # Guards this process until a later persist succeeds.
            self._notified_in_process.add(document_id)
            return
        self._notified_in_process.discard(document_id)
        result.notified = True

    async def _send(self, result: DispatchResult) -> None:
        campaign_id = result.campaign_id or ""
        status: str | None = None
        try:
            status = await self.client.get_campaign_status(campaign_id)
        except Exception as exc:
            logger.warning("could not verify campaign status campaign_id=%s: %s", campaign_id, exc)

        if status in DELIVERED_STATUSES and not self.settings.mailchimp_force_resend:
            logger.warning("campaign already %s; skipping send campaign_id=%s", status, campaign_id)
            result.reason = "already_sent"
            return

        try:
            await self.client.send_campaign(campaign_id)
        except Exception as exc:
            logger.error(
                "campaign send failed campaign_id=%s document_id=%s phase=send: %s",
                campaign_id,
                result.document_id,
                exc,
            )
            result.reason = "send_failed"
            result.phase = "send"
            return
        logger.info("sent campaign campaign_id=%s document_id=%s", campaign_id, result.document_id)
        result.outcome = DispatchOutcome.SENT
        result.reason = "campaign_sent"

    @staticmethod
    def _failed(document_id: str, key: str, phase: str, exc: Exception) -> DispatchResult:
        return DispatchResult(
            outcome=DispatchOutcome.FAILED,
            reason=str(exc),
            document_id=document_id,
            phase=phase,
            idempotency_key=key,
        )
