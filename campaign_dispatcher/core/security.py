import hashlib
import hmac

from fastapi import Depends, Header, HTTPException, status

from campaign_dispatcher.core.config import Settings, get_settings


async def verify_webhook_secret(
    settings: Settings = Depends(get_settings),
    x_webhook_secret: str | None = Header(default=None, alias="X-Webhook-Secret"),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> None:
    if not settings.webhook_secret:
        return

    presented = x_webhook_secret
    if not presented and authorization and authorization.lower().startswith("bearer "):
        presented = authorization.split(" ", maxsplit=1)[1].strip()
    if not presented:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="webhook auth requires X-Webhook-Secret or bearer token",
        )

    expected_hash = hashlib.sha256(settings.webhook_secret.encode("utf-8")).hexdigest()
    presented_hash = hashlib.sha256(presented.encode("utf-8")).hexdigest()
    if not hmac.compare_digest(expected_hash, presented_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid webhook secret")
