"""Route registration for the ChatFlow API."""

from fastapi import FastAPI

from .events import router as events_router
from .executions import router as executions_router
from .workflows import router as workflows_router


def register_routes(app: FastAPI):
    app.include_router(workflows_router)
    app.include_router(executions_router)
    app.include_router(events_router)
