"""Cost event recording endpoint."""

from fastapi import APIRouter, HTTPException, status

from costwatch.core.cost_logger import (
    CostValidationError,
    log_generation_cost,
    validate_cost_event,
)
from costwatch.db.costs_repository import ServiceUsage
from costwatch.web.schemas import CostEventCreate, CostEventResponse

router = APIRouter(prefix="/api/costs", tags=["costs"])


@router.post("", response_model=CostEventResponse, status_code=status.HTTP_201_CREATED)
async def record_cost(event: CostEventCreate) -> CostEventResponse:
    """Record the cost of one operation."""
    try:
        services = [ServiceUsage.from_dict(s.model_dump()) for s in event.services]
        validate_cost_event(event.user_id, event.source, services, event.total_cost)
    except (CostValidationError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    cost_id = log_generation_cost(
        user_id=event.user_id,
        source=event.source,
        services=services,
        total_cost=event.total_cost,
        video_id=event.video_id,
        transcript_id=event.transcript_id,
        problem_id=event.problem_id,
    )
    if cost_id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store cost event",
        )

    return CostEventResponse(success=True, cost_id=cost_id)
