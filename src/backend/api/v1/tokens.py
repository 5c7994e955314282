"""
Token administration endpoints.
"""

from fastapi import APIRouter, Depends, status

from api.deps import get_token_manager, verify_cron_secret
from schemas.pipeline import TokenExchangeRequest, TokenExchangeResponse
from services.token_lifecycle import TokenLifecycleManager

router = APIRouter()


@router.post(
    "/instagram/exchange",
    response_model=TokenExchangeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_cron_secret)],
)
async def exchange_instagram_token(
    body: TokenExchangeRequest,
    tokens: TokenLifecycleManager = Depends(get_token_manager),
) -> TokenExchangeResponse:
    """Exchange a short-lived token and store the long-lived one (encrypted)."""
    result = await tokens.exchange_short_lived_token(body.short_lived_token)
    return TokenExchangeResponse(**result)
