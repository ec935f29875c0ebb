from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.comments import router as comments_router
from app.api.conversations import router as conversations_router
from app.api.custom_fields import router as custom_fields_router
from app.api.entities import router as entities_router
from app.api.goals import router as goals_router
from app.api.invitations import router as invitations_router
from app.api.notifications import router as notifications_router
from app.api.preferences import router as preferences_router
from app.api.recurring_tasks import router as recurring_tasks_router
from app.api.reminders import router as reminders_router
from app.api.tasks import router as tasks_router
from app.api.webhooks import router as webhooks_router
from app.api.wikis import router as wikis_router
from app.api.workspaces import router as workspaces_router
from app.config import settings
from app.errors import register_error_handlers
from app.logging import configure_logging

app = FastAPI(title=f"{settings.brand_name} API")

configure_logging()
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(entities_router)
_include_api_router(workspaces_router)
_include_api_router(tasks_router)
_include_api_router(recurring_tasks_router)
_include_api_router(goals_router)
_include_api_router(wikis_router)
_include_api_router(comments_router)
_include_api_router(conversations_router)
_include_api_router(preferences_router)
_include_api_router(webhooks_router)
_include_api_router(invitations_router)
_include_api_router(notifications_router)
_include_api_router(reminders_router)
_include_api_router(custom_fields_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
