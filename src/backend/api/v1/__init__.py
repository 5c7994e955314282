"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.pipeline import router as pipeline_router
from api.v1.telegram import router as telegram_router
from api.v1.tokens import router as tokens_router
from api.v1.voting import router as voting_router

router = APIRouter()

router.include_router(pipeline_router, prefix="/pipeline", tags=["Daily Post"])
router.include_router(voting_router, prefix="/voting", tags=["Voting"])
router.include_router(telegram_router, prefix="/telegram", tags=["Telegram"])
router.include_router(tokens_router, prefix="/tokens", tags=["Tokens"])
