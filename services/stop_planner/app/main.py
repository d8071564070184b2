import logging

from fastapi import FastAPI

from src.common.logging import setup_logging
from src.common.metrics import setup_metrics
from src.common.telemetry import setup_otel

from . import api, deps
from .api import router

logger = logging.getLogger(__name__)

app = FastAPI(title="stop_planner")
setup_metrics(app, "stop_planner")
setup_otel(app, "stop_planner")


@app.on_event("startup")
async def on_startup() -> None:
    settings = deps.get_settings()
    setup_logging(settings.log_level)
    if not settings.mapbox_access_token:
        logger.warning(
            "MAPBOX_ACCESS_TOKEN is not set; search and optimization are disabled"
        )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    api.close_all()


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
async def readyz() -> dict[str, str]:
    return {"status": "ready"}


app.include_router(router)
