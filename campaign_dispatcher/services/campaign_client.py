from __future__ import annotations

import asyncio
import itertools
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from campaign_dispatcher.core.config import Settings

logger = logging.getLogger(__name__)

DRAFT_STATUS = "save"
DELIVERED_STATUSES = frozenset({"sent", "sending"})
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class CampaignClientError(Exception):
    """Raised when a campaign API call fails."""

    def __init__(self, message: str, *, status_code: int | None = None, transient: bool = False) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient


@dataclass(slots=True)
class RemoteCampaignSummary:
    id: str
    title: str | None
    status: str | None
    list_id: str | None = None
    subject_line: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RemoteCampaignSummary:
        settings = payload.get("settings") if isinstance(payload.get("settings"), dict) else {}
        recipients = payload.get("recipients") if isinstance(payload.get("recipients"), dict) else {}
        return cls(
            id=str(payload.get("id", "")),
            title=settings.get("title"),
            status=payload.get("status"),
            list_id=recipients.get("list_id"),
            subject_line=settings.get("subject_line"),
        )


@dataclass(slots=True)
class CampaignSpec:
    list_id: str
    title: str
    subject_line: str
    from_name: str
    reply_to: str
    preview_text: str = ""
    to_name: str = "*|FNAME|*"
    tracking: dict[str, bool] = field(
        default_factory=lambda: {"opens": True, "html_clicks": True, "text_clicks": False}
    )

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "regular",
            "recipients": {"list_id": self.list_id},
            "settings": {
                "title": self.title,
                "subject_line": self.subject_line,
                "preview_text": self.preview_text,
                "from_name": self.from_name,
                "reply_to": self.reply_to,
                "to_name": self.to_name,
                "auto_footer": False,
            },
            "tracking": dict(self.tracking),
        }


class CampaignClient(Protocol):
    async def list_campaigns(
        self, *, list_id: str, status: str | None = None, count: int = 50
    ) -> list[RemoteCampaignSummary]: ...

    async def create_campaign(self, spec: CampaignSpec) -> str: ...

    async def set_content(self, campaign_id: str, html: str) -> None: ...

    async def send_campaign(self, campaign_id: str) -> None: ...

    async def get_campaign_status(self, campaign_id: str) -> str | None: ...


class MailchimpCampaignClient:
    """Mailchimp Marketing API v3 campaign calls with bounded retry."""

    def __init__(
        self,
        *,
        api_key: str,
        server_prefix: str,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        retry_base_seconds: float = 0.5,
        retry_max_seconds: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = f"https://{server_prefix.strip()}.api.mailchimp.com/3.0"
        self.auth = httpx.BasicAuth("campaign-dispatcher", api_key)
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_base_seconds = max(0.0, retry_base_seconds)
        self.retry_max_seconds = max(self.retry_base_seconds, retry_max_seconds)
        self.transport = transport

    async def ping(self) -> dict[str, Any]:
        return await self._request("GET", "/ping")

    async def list_campaigns(
        self, *, list_id: str, status: str | None = None, count: int = 50
    ) -> list[RemoteCampaignSummary]:
        params: dict[str, Any] = {
            "list_id": list_id,
            "count": count,
            "sort_field": "create_time",
            "sort_dir": "DESC",
        }
        if status:
            params["status"] = status
        payload = await self._request("GET", "/campaigns", params=params)
        campaigns = payload.get("campaigns")
        if not isinstance(campaigns, list):
            return []
        return [RemoteCampaignSummary.from_payload(item) for item in campaigns if isinstance(item, dict)]

    async def create_campaign(self, spec: CampaignSpec) -> str:
        payload = await self._request("POST", "/campaigns", json=spec.to_payload(), idempotent=False)
        campaign_id = payload.get("id")
        if not isinstance(campaign_id, str) or not campaign_id:
            raise CampaignClientError("campaign create returned no id")
        return campaign_id

    async def set_content(self, campaign_id: str, html: str) -> None:
        await self._request("PUT", f"/campaigns/{campaign_id}/content", json={"html": html})

    async def send_campaign(self, campaign_id: str) -> None:
        await self._request("POST", f"/campaigns/{campaign_id}/actions/send", idempotent=False)

    async def get_campaign_status(self, campaign_id: str) -> str | None:
        payload = await self._request("GET", f"/campaigns/{campaign_id}", params={"fields": "id,status"})
        status = payload.get("status")
        return status if isinstance(status, str) else None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        idempotent: bool = True,
    ) -> dict[str, Any]:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._send_once(method, path, params=params, json=json)
            except CampaignClientError as exc:
                if not self._should_retry(exc, idempotent=idempotent) or attempt >= self.max_attempts:
                    raise
                delay = self._backoff_seconds(attempt)
                logger.warning(
                    "mailchimp %s %s failed (attempt %s/%s): %s; retry in %.2fs",
                    method,
                    path,
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)

    async def _send_once(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None,
        json: dict[str, Any] | None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=self.auth,
                timeout=self.timeout_seconds,
                transport=self.transport,
            ) as client:
                response = await client.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            raise CampaignClientError(f"mailchimp unreachable: {exc}", transient=True) from exc

        if response.status_code >= 400:
            raise CampaignClientError(
                f"mailchimp {method} {path} returned {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
                transient=response.status_code in RETRYABLE_STATUS_CODES,
            )
        if response.status_code == 204 or not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise CampaignClientError(f"mailchimp {method} {path} returned invalid json") from exc
        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def _should_retry(exc: CampaignClientError, *, idempotent: bool) -> bool:
        if not exc.transient:
            return False
        if idempotent:
            return True
        # A 429 is rejected before Mailchimp acts on the request; anything else may have been applied.
        return exc.status_code == 429

    def _backoff_seconds(self, attempt: int) -> float:
        jitter = random.uniform(0.0, 0.5)
        return min(self.retry_base_seconds * (2 ** (attempt - 1)) * (1.0 + jitter), self.retry_max_seconds)


class MockCampaignClient:
    """In-memory stand-in used when mock mode is on; logs every call it simulates."""

    def __init__(self) -> None:
        self.campaigns: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self._ids = itertools.count(1)

    async def list_campaigns(
        self, *, list_id: str, status: str | None = None, count: int = 50
    ) -> list[RemoteCampaignSummary]:
        self.calls.append(("list", list_id))
        matches = [
            record["summary"]
            for record in reversed(self.campaigns.values())
            if record["summary"].list_id == list_id and (status is None or record["summary"].status == status)
        ]
        logger.info("mock mode: listed %s campaign(s) list_id=%s status=%s", len(matches), list_id, status)
        return matches[:count]

    async def create_campaign(self, spec: CampaignSpec) -> str:
        campaign_id = f"mock-{next(self._ids)}"
        self.calls.append(("create", campaign_id))
        self.campaigns[campaign_id] = {
            "summary": RemoteCampaignSummary(
                id=campaign_id,
                title=spec.title,
                status=DRAFT_STATUS,
                list_id=spec.list_id,
                subject_line=spec.subject_line,
            ),
            "html": "",
        }
        logger.info("mock mode: would create campaign id=%s title=%s", campaign_id, spec.title)
        return campaign_id

    async def set_content(self, campaign_id: str, html: str) -> None:
        self.calls.append(("set_content", campaign_id))
        record = self._get(campaign_id)
        record["html"] = html
        logger.info("mock mode: would set content campaign_id=%s bytes=%s", campaign_id, len(html))

    async def send_campaign(self, campaign_id: str) -> None:
        self.calls.append(("send", campaign_id))
        self._get(campaign_id)["summary"].status = "sent"
        logger.info("mock mode: would send campaign_id=%s", campaign_id)

    async def get_campaign_status(self, campaign_id: str) -> str | None:
        self.calls.append(("status", campaign_id))
        return self._get(campaign_id)["summary"].status

    def count(self, call: str) -> int:
        return sum(1 for name, _ in self.calls if name == call)

    def _get(self, campaign_id: str) -> dict[str, Any]:
        record = self.campaigns.get(campaign_id)
        if record is None:
            raise CampaignClientError(f"campaign not found: {campaign_id}", status_code=404)
        return record


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict):
        detail = payload.get("detail") or payload.get("title")
        if isinstance(detail, str) and detail:
            return detail
    return response.text[:200]


def build_campaign_client(settings: Settings) -> CampaignClient:
    if settings.mailchimp_mock_mode:
        logger.warning("mailchimp mock mode enabled; campaign calls are simulated")
        return MockCampaignClient()
    return MailchimpCampaignClient(
        api_key=settings.mailchimp_api_key or "",
        server_prefix=settings.mailchimp_server_prefix or "us1",
        timeout_seconds=settings.mailchimp_timeout_seconds,
        max_attempts=settings.mailchimp_retry_attempts,
        retry_base_seconds=settings.mailchimp_retry_base_seconds,
        retry_max_seconds=settings.mailchimp_retry_max_seconds,
    )
