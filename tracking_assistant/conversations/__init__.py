"""Conversation log models and persistence."""

from .models import Turn, TurnReply
from .repository import (
    ConversationLogStore,
    InMemoryConversationLogStore,
    PostgresConversationLogStore,
)

__all__ = [
    "ConversationLogStore",
    "InMemoryConversationLogStore",
    "PostgresConversationLogStore",
    "Turn",
    "TurnReply",
]
