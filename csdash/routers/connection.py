"""API router for the saved spreadsheet connection."""
from __future__ import annotations

from fastapi import APIRouter, Request

from csdash.connection_manager import get_connection_manager
from csdash.models import ConnectionSettings

connection_router = APIRouter(prefix="/api/connection", tags=["connection"])


@connection_router.get("", response_model=ConnectionSettings)
def get_connection(request: Request):
    return get_connection_manager(request).get_settings()


@connection_router.put("", response_model=ConnectionSettings)
def save_connection(request: Request, settings: ConnectionSettings):
    """Persist the dashboard's connection settings."""
    return get_connection_manager(request).save_settings(settings)


@connection_router.delete("", response_model=ConnectionSettings)
def reset_connection(request: Request):
    return get_connection_manager(request).reset()
