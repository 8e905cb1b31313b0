"""
Cachetron - Dashboard Server

Serves the metrics sink as JSON and, when present, a directory of prebuilt
dashboard assets. Rendering happens entirely client-side.

Routes:
    GET /metric.json   metrics records (empty list when missing/corrupt)
    GET /api/health    liveness probe
    /                  static dashboard assets (index.html)
"""

import logging
from pathlib import Path

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from .observability.store import MetricsStore

logger = logging.getLogger(__name__)


def create_dashboard_app(metrics_path: str | Path, static_dir: str | Path | None = None) -> Starlette:
    """Build the dashboard ASGI app."""
    store = MetricsStore(metrics_path)

    async def metrics(request: Request) -> JSONResponse:
        return JSONResponse(await store.read_all(), headers={"Cache-Control": "no-store"})

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "metrics_path": str(store.path)})

    routes: list[Route | Mount] = [
        Route("/metric.json", metrics, methods=["GET"]),
        Route("/api/health", health, methods=["GET"]),
    ]

    if static_dir is not None:
        static_path = Path(static_dir)
        if static_path.is_dir():
            routes.append(Mount("/", app=StaticFiles(directory=static_path, html=True), name="static"))
        else:
            logger.warning("Dashboard static directory not found", extra={"path": str(static_path)})

    return Starlette(routes=routes)
