"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from biteswipe.api.errors import register_error_handlers
from biteswipe.api.sessions import router as sessions_router
from biteswipe.app_logging import configure_logging
from biteswipe.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Starting BiteSwipe API: store=%s", container.settings.store_backend
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    register_error_handlers(app)
    app.include_router(sessions_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/restaurants")
    async def list_restaurants(request: Request) -> dict[str, object]:
        """Return the current restaurant candidates."""
        state_container: AppContainer = request.app.state.container
        restaurants = await state_container.catalog.list_restaurants()
        return {"restaurants": [r.to_record() for r in restaurants]}

    return app
