"""
FastAPI application shell.

Routes are mounted by the embedding application; this module only owns
startup (build the Core, create tables), shutdown, and error rendering.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from inkwell import __version__
from inkwell.api.errors import install_error_handlers
from inkwell.config import Settings, get_settings
from inkwell.core.provider import Core, create_core

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    core: Core | None = None,
    init_storage: bool = True,
) -> FastAPI:
    """
    Build the app.

    Args:
        settings: Defaults to ``get_settings()``.
        core: Prebuilt core (tests); built from settings otherwise.
        init_storage: Run table creation and seeding at startup.
    """
    settings = settings or get_settings()
    core = core or create_core(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if init_storage:
            await core.init()
        logger.info(f"Inkwell starting in {settings.environment} mode")

        yield

        await core.close()
        logger.info("Inkwell shut down")

    app = FastAPI(
        title="Inkwell",
        description="Content management core",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.core = core
    install_error_handlers(app)
    return app
