"""Route handlers for the Web API."""

from costwatch.web.routes.health import router as health_router
from costwatch.web.routes.costs import router as costs_router
from costwatch.web.routes.jobs import router as jobs_router
from costwatch.web.routes.alerts import router as alerts_router
from costwatch.web.routes.analytics import router as analytics_router
from costwatch.web.routes.users import router as users_router

__all__ = [
    "health_router",
    "costs_router",
    "jobs_router",
    "alerts_router",
    "analytics_router",
    "users_router",
]
