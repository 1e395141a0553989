"""Pydantic models matching the dashboard's TypeScript types."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SessionStatus = Literal["open", "resolved", "escalated"]
Sentiment = Literal["positive", "neutral", "frustrated"]
Speaker = Literal["user", "agent"]
SourceKind = Literal["csv", "html", "none"]


# ── Session-related models ──────────────────────────────────────────

class Turn(BaseModel):
    model_config = ConfigDict(frozen=True)

    speaker: Speaker = "user"
    text: str = ""
    timestamp: datetime


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    success: bool = True


class Session(BaseModel):
    """One customer-service conversation (one spreadsheet row)."""

    model_config = ConfigDict(frozen=True)

    sessionId: str
    customerId: str = "Unknown"
    createdAt: datetime
    status: SessionStatus = "open"
    escalationRecommended: bool = False
    tags: list[str] = Field(default_factory=list)
    sentiment: Sentiment = "neutral"
    turns: list[Turn] = Field(default_factory=list)
    tools: list[ToolCall] = Field(default_factory=list)


# ── Request / response payloads ────────────────────────────────────

class ViewableLinkRequest(BaseModel):
    viewableLink: str = ""


class SessionsResponse(BaseModel):
    success: bool = True
    sessions: list[Session] = Field(default_factory=list)
    count: int = 0
    source: Optional[str] = None
    note: Optional[str] = None
    dataUrl: Optional[str] = None
    isSample: bool = False


class TableInfo(BaseModel):
    name: str = "Shared View"
    recordCount: int = 0
    fields: list[str] = Field(default_factory=list)


class ConnectionTestResponse(BaseModel):
    success: bool = True
    message: str = "Connection successful"
    tableInfo: TableInfo
    debug: dict[str, Any] = Field(default_factory=dict)


class TableInfoResponse(BaseModel):
    success: bool = True
    tableInfo: TableInfo


class SyncResponse(BaseModel):
    success: bool = True
    message: str = "Data sync completed"
    count: int = 0
    isSample: bool = False
    timestamp: str = ""


class ConnectionSettings(BaseModel):
    viewableLink: str = ""
    connected: bool = False
    lastSync: Optional[str] = None


class ChatRequest(BaseModel):
    message: str = ""
    sessions: Optional[list[dict[str, Any]]] = None


class ChatResponse(BaseModel):
    content: str
    suggestions: list[str] = Field(default_factory=list)


class WebhookAck(BaseModel):
    success: bool = True
    message: str = "Session data received successfully"
    sessionId: str
