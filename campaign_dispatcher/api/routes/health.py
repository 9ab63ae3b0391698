from fastapi import APIRouter, Depends

from campaign_dispatcher.core.config import Settings, get_settings

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    if settings.missing_mailchimp_settings():
        return {"status": "ok", "dispatch": "unconfigured"}
    return {"status": "ok", "dispatch": "mock" if settings.mailchimp_mock_mode else "live"}
