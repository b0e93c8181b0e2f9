"""Objective API endpoints: list, claim, claim set."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from objective_engine.dependencies import get_current_user_id, get_objective_service
from objective_engine.objectives.results import Err, ErrorKind, Result
from objective_engine.objectives.schemas import (
    ClaimObjectiveRequest,
    ClaimObjectiveSetRequest,
    ClaimResponse,
    ObjectiveBoardResponse,
)
from objective_engine.objectives.service import ObjectiveService
from objective_engine.objectives.types import ClaimedReward

router = APIRouter(prefix="/api/v1/objectives", tags=["Objectives"])

ERROR_STATUS = {
    ErrorKind.DEFINITION_NOT_FOUND: 404,
    ErrorKind.NOT_COMPLETED_YET: 400,
    ErrorKind.SET_NOT_COMPLETED: 400,
    ErrorKind.ALREADY_CLAIMED: 409,
}


def _claim_response(result: Result[ClaimedReward]) -> ClaimResponse:
    if isinstance(result, Err):
        raise HTTPException(
            status_code=ERROR_STATUS[result.kind],
            detail={"code": result.kind.value, "message": result.message},
        )
    claimed = result.value
    return ClaimResponse(
        source_type=claimed.source_type,
        id=claimed.definition_id,
        code=claimed.code,
        reward_type=claimed.reward_type,
        reward_value=claimed.reward_value,
        coins_delta=claimed.coins_delta,
        created_reward_pack_id=claimed.reward_pack_id,
    )


@router.get("", response_model=ObjectiveBoardResponse)
async def list_objectives(
    user_id: int = Depends(get_current_user_id),
    service: ObjectiveService = Depends(get_objective_service),
):
    """Resync, then return all active objectives and sets with the caller's progress."""
    return await service.list_objectives(user_id)


@router.post("/claim", response_model=ClaimResponse)
async def claim_objective(
    body: ClaimObjectiveRequest,
    user_id: int = Depends(get_current_user_id),
    service: ObjectiveService = Depends(get_objective_service),
):
    """Claim the reward of a completed objective."""
    return _claim_response(await service.claim(user_id, body.ref))


@router.post("/claim-set", response_model=ClaimResponse)
async def claim_objective_set(
    body: ClaimObjectiveSetRequest,
    user_id: int = Depends(get_current_user_id),
    service: ObjectiveService = Depends(get_objective_service),
):
    """Claim the reward of a completed objective set."""
    return _claim_response(await service.claim_set(user_id, body.ref))
