"""
Telegram webhook endpoint.

Receives bot updates; vote button presses are routed to the voting
orchestrator, every other update is acknowledged and ignored.
"""

from fastapi import APIRouter, Depends

from api.deps import get_voting_orchestrator, verify_telegram_secret
from schemas.telegram import TelegramUpdate, WebhookResponse
from services.voting_orchestrator import VotingOrchestrator

router = APIRouter()


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    dependencies=[Depends(verify_telegram_secret)],
)
async def telegram_webhook(
    update: TelegramUpdate,
    orchestrator: VotingOrchestrator = Depends(get_voting_orchestrator),
) -> WebhookResponse:
    """Handle one Telegram update. Always answers 200 so Telegram does not retry."""
    outcome = await orchestrator.handle_callback(update.model_dump(by_alias=True))
    if outcome is None:
        return WebhookResponse(handled=False)
    return WebhookResponse(handled=True, status=outcome.status.value)
