import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from campaign_dispatcher.core.config import Settings, get_settings
from campaign_dispatcher.core.security import verify_webhook_secret
from campaign_dispatcher.schemas.events import ChangeEventIn, EventAccepted
from campaign_dispatcher.services.dispatcher import CampaignDispatcher, get_dispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "",
    response_model=EventAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(verify_webhook_secret)],
)
async def receive_event(
    payload: ChangeEventIn,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    dispatcher: CampaignDispatcher = Depends(get_dispatcher),
) -> EventAccepted:
    if payload.model and payload.model != settings.strapi_model:
        return EventAccepted(accepted=False, reason=f"model {payload.model} is not dispatched")

    try:
        event = payload.to_event(
            category_relation=settings.strapi_category_relation,
            notified_field=settings.strapi_notified_field,
        )
    except ValidationError as exc:
        errors = [
            {"type": error["type"], "loc": ("body", "entry", *error["loc"]), "msg": error["msg"]}
            for error in exc.errors(include_url=False)
        ]
        raise RequestValidationError(errors) from exc

    # Runs after the 202 is returned.
    background_tasks.add_task(dispatcher.handle_event, event)
    logger.info(
        "change event accepted action=%s document_id=%s payload_keys=%s",
        event.action.value,
        event.entry.identity,
        ",".join(sorted(event.request_payload_keys)),
    )
    return EventAccepted(accepted=True, action=event.action, document_id=event.entry.identity or None)
