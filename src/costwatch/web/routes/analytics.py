"""Admin cost report endpoints."""

from fastapi import APIRouter, Depends, Query

from costwatch.core import cost_analytics
from costwatch.web.dependencies import require_admin_key
from costwatch.web.schemas import (
    CostSummaryResponse,
    HeatmapResponse,
    ModelComparisonResponse,
    ServiceEfficiencyResponse,
    SourceBreakdownResponse,
    TokensTrendResponse,
    TopUsersResponse,
)

router = APIRouter(
    prefix="/api/admin/analytics/costs",
    tags=["analytics"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("/summary", response_model=CostSummaryResponse)
def cost_summary() -> CostSummaryResponse:
    """All-time total cost and total per service."""
    return CostSummaryResponse(**cost_analytics.cost_summary())


@router.get("/by-source", response_model=SourceBreakdownResponse)
def costs_by_source() -> SourceBreakdownResponse:
    """Cost per feature source."""
    return SourceBreakdownResponse(**cost_analytics.costs_by_source())


@router.get("/services", response_model=ServiceEfficiencyResponse)
def service_efficiency() -> ServiceEfficiencyResponse:
    """Service cost and success rate ranking."""
    return ServiceEfficiencyResponse(services=cost_analytics.service_efficiency())


@router.get("/models", response_model=ModelComparisonResponse)
def model_comparison() -> ModelComparisonResponse:
    """Cost and tokens per LLM model."""
    return ModelComparisonResponse(models=cost_analytics.model_comparison())


@router.get("/users", response_model=TopUsersResponse)
def top_users(limit: int = Query(default=10, ge=1, le=100)) -> TopUsersResponse:
    """Users with the highest total cost."""
    return TopUsersResponse(users=cost_analytics.top_users(limit))


@router.get("/heatmap", response_model=HeatmapResponse)
def spending_heatmap(days: int = Query(default=30, ge=1, le=365)) -> HeatmapResponse:
    """Daily spend over the last `days` days."""
    return HeatmapResponse(**cost_analytics.spending_heatmap(days))


@router.get("/tokens-trend", response_model=TokensTrendResponse)
def tokens_trend(days: int = Query(default=30, ge=1, le=365)) -> TokensTrendResponse:
    """Daily token usage over the last `days` days."""
    return TokensTrendResponse(**cost_analytics.tokens_trend(days))
