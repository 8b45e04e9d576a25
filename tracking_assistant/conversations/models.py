"""Domain models used by the conversation flow."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Turn(BaseModel):
    """One completed user/assistant exchange as stored in ``chat_logs``."""

    model_config = ConfigDict(frozen=True)

    thread_id: str
    user_message: str
    assistant_reply: str
    created_at: datetime | None = None
    id: int | None = None


@dataclass(frozen=True)
class TurnReply:
    reply: str
    thread_id: str
