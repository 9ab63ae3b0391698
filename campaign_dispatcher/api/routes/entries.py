from fastapi import APIRouter, Depends, HTTPException, status

from campaign_dispatcher.core.security import verify_webhook_secret
from campaign_dispatcher.schemas.events import SendMailOut
from campaign_dispatcher.services.dispatcher import CampaignDispatcher, DispatchRejectedError, get_dispatcher
from campaign_dispatcher.services.reconciler import DispatchOutcome

router = APIRouter()

REJECTION_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "not_published": status.HTTP_400_BAD_REQUEST,
    "not_eligible": status.HTTP_400_BAD_REQUEST,
    "missing_configuration": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.post(
    "/{document_id}/send-mail",
    response_model=SendMailOut,
    dependencies=[Depends(verify_webhook_secret)],
)
async def send_mail(
    document_id: str,
    dispatcher: CampaignDispatcher = Depends(get_dispatcher),
) -> SendMailOut:
    try:
        result, title = await dispatcher.dispatch_manual(document_id)
    except DispatchRejectedError as exc:
        code = REJECTION_STATUS.get(exc.reason, status.HTTP_400_BAD_REQUEST)
        raise HTTPException(status_code=code, detail=str(exc)) from exc

    if result.outcome is DispatchOutcome.FAILED:
        detail = result.reason if result.phase is None else f"{result.phase}: {result.reason}"
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"failed to dispatch campaign ({detail})")

    return SendMailOut(
        success=result.succeeded,
        outcome=result.outcome.value,
        campaign_id=result.campaign_id,
        title=title,
        reason=result.reason,
    )
