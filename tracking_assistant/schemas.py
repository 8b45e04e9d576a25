"""Pydantic schemas for the HTTP API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    thread_id: str | None = Field(default=None, alias="threadId")


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    thread_id: str = Field(alias="threadId")


class AnalyticsRequest(BaseModel):
    message: str


class AnalyticsResponse(BaseModel):
    response: str


class ChatLogEntry(BaseModel):
    id: int | None = None
    thread_id: str
    user_message: str
    assistant_reply: str
    created_at: datetime | None = None


class ErrorResponse(BaseModel):
    error: str
