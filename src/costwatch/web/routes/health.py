"""Health check endpoint."""

from fastapi import APIRouter

from costwatch import __version__
from costwatch.utils.dates import utc_now
from costwatch.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=utc_now().isoformat(),
    )
