"""Application factory wiring the site together."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles

from .admin import create_admin_app
from .config import SiteConfig
from .context import SiteContext, build_context
from .editor import create_editor_app
from .sessions import SessionSweeper
from .web import register_public_routes, render_not_found

logger = logging.getLogger("newsroom.service")

STATIC_DIR = Path(__file__).resolve().parent / "static"


def create_app(
    *,
    context: Optional[SiteContext] = None,
    config: Optional[SiteConfig] = None,
    start_sweeper: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application for the site.

    The session sweeper runs for the lifetime of the application; pass
    ``start_sweeper=False`` to drive :meth:`SessionSweeper.run_once`
    manually instead.
    """

    site = context or build_context(config)
    sweeper = SessionSweeper(site.sessions, interval=site.config.sweep_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if start_sweeper:
            sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()

    app = FastAPI(
        title=site.config.site_name,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.context = site
    app.state.sweeper = sweeper

    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    register_public_routes(app, site)
    app.mount("/admin", create_admin_app(site))
    app.mount("/editor", create_editor_app(site))

    async def not_found(request: Request, exc: Exception) -> HTMLResponse:
        return render_not_found(request, site)

    app.add_exception_handler(status.HTTP_404_NOT_FOUND, not_found)

    logger.info("Site application created (data_dir=%s)", site.config.data_dir)
    return app


__all__ = ["create_app"]
