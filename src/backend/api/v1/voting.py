"""
Voting round endpoints.

- GET  /voting/manage : cron trigger, opens or closes the round
- POST /voting/vote   : direct vote (same rules as the Telegram buttons)
"""

from fastapi import APIRouter, Depends

from api.deps import get_voting_orchestrator, verify_cron_secret
from core.exceptions import DuplicateVoteError
from schemas.voting import VoteCreate, VoteResponse, VotingRunResponse
from services.voting_orchestrator import (
    VOTE_ACCEPTED_TEXT,
    VOTE_DUPLICATE_TEXT,
    VOTE_NOT_FOUND_TEXT,
    VoteStatus,
    VotingOrchestrator,
)

router = APIRouter()


@router.get(
    "/manage",
    response_model=VotingRunResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def manage_voting(
    orchestrator: VotingOrchestrator = Depends(get_voting_orchestrator),
) -> VotingRunResponse:
    """Open a voting round, or close the open one and publish the winner."""
    result = await orchestrator.manage()
    return VotingRunResponse(action=result.action, details=result.details)


@router.post(
    "/vote",
    response_model=VoteResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def cast_vote(
    vote: VoteCreate,
    orchestrator: VotingOrchestrator = Depends(get_voting_orchestrator),
) -> VoteResponse:
    """
    Cast a vote for an image of the open round.

    A voter can vote once per round; the answer says whether the vote was
    accepted, a duplicate, or for an unknown image.
    """
    try:
        outcome = await orchestrator.handle_vote(vote.voter_id, vote.image_hash)
    except DuplicateVoteError:
        return VoteResponse(
            success=False, status=VoteStatus.DUPLICATE.value, message=VOTE_DUPLICATE_TEXT
        )

    if outcome.status == VoteStatus.NOT_FOUND:
        return VoteResponse(
            success=False, status=VoteStatus.NOT_FOUND.value, message=VOTE_NOT_FOUND_TEXT
        )

    return VoteResponse(
        success=True,
        status=VoteStatus.ACCEPTED.value,
        message=VOTE_ACCEPTED_TEXT,
        image_url=outcome.image_url,
        votes=outcome.votes,
    )
