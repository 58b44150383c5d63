"""Application factory for the Canvas Flow FastAPI backend."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .client import DifyApiClient
from .config import get_allowed_origins, get_dify_settings
from .logging_utils import configure_logging
from .routers import donation, tasks

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure a FastAPI application instance."""
    configure_logging()
    app = FastAPI(
        title="Canvas Flow Backend",
        version="0.1.0",
        description="Lean Canvas generation backend driving a Dify workflow.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_origin_regex=r"http://localhost:\d+$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    settings = get_dify_settings()
    for problem in settings.validate():
        logger.warning("Dify configuration problem: %s", problem)
    if settings.is_demo_mode:
        logger.info("DIFY_API_KEY is not set; serving mock data in demo mode")

    app.state.dify_settings = settings
    app.state.dify_client = DifyApiClient(settings)
    app.include_router(tasks.router)
    app.include_router(donation.router)
    return app


app = create_app()
