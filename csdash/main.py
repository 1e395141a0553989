"""CSDash FastAPI backend: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from csdash import config
from csdash.connection_manager import ConnectionManager, get_connection_manager
from csdash.models import SyncResponse
from csdash.routers.airtable import airtable_router
from csdash.routers.assistant import assistant_router
from csdash.routers.connection import connection_router
from csdash.routers.webhook import webhook_router
from csdash.observability import initialize as initialize_observability, shutdown as shutdown_observability

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("csdash")


def _log_refresh(result: SyncResponse) -> None:
    logger.info("Data refreshed: %d sessions (sample=%s)", result.count, result.isSample)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("CSDash backend starting up")
    initialize_observability(app)
    manager = ConnectionManager(config.CONNECTION_STORE_PATH)
    app.state.connection_manager = manager
    unsubscribe_refresh = manager.subscribe(_log_refresh)

    yield

    logger.info("CSDash backend shutting down")
    unsubscribe_refresh()
    shutdown_observability(app)


app = FastAPI(
    title="CSDash API",
    description="Backend API for the customer-service session dashboard",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow the dashboard dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(airtable_router)
app.include_router(connection_router)
app.include_router(webhook_router)
app.include_router(assistant_router)


@app.get("/api/health")
def health(request: Request):
    """Health check endpoint."""
    settings = get_connection_manager(request).get_settings()
    return {
        "status": "ok",
        "connection": "connected" if settings.connected else "disconnected",
        "assistant": "configured" if config.ANTHROPIC_API_KEY else "unconfigured",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("csdash.main:app", host=config.HOST, port=config.PORT)
