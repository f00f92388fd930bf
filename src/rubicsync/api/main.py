"""FastAPI application factory."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rubicsync.api.routes import sync as sync_routes
from rubicsync.db.engine import get_engine


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Creates tables on first use (idempotent)
        get_engine()
        yield

    app = FastAPI(
        title="rubicsync",
        description="Rubic to Tripletex reconciliation trigger",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    return app


# Module-level app instance for uvicorn
app = create_app()
