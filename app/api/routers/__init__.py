"""
app/api/routers package marker.
"""

from app.api.routers.cron import router as cron_router
from app.api.routers.dashboard import router as dashboard_router
from app.api.routers.feedback import router as feedback_router
from app.api.routers.goals import router as goals_router
from app.api.routers.integrations import router as integrations_router
from app.api.routers.manual_metrics import router as manual_metrics_router
from app.api.routers.metrics import router as metrics_router
from app.api.routers.nango_webhook import router as nango_webhook_router
from app.api.routers.organization import router as organization_router
from app.api.routers.pipeline import router as pipeline_router
from app.api.routers.public_view import router as public_view_router
from app.api.routers.roles import router as roles_router
from app.api.routers.teams import router as teams_router
from app.api.routers.transformers import router as transformers_router

__all__ = [
    "cron_router",
    "dashboard_router",
    "feedback_router",
    "goals_router",
    "integrations_router",
    "manual_metrics_router",
    "metrics_router",
    "nango_webhook_router",
    "organization_router",
    "pipeline_router",
    "public_view_router",
    "roles_router",
    "teams_router",
    "transformers_router",
]
