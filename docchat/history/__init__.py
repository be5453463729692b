"""In-memory conversation history."""

from __future__ import annotations

from .conversation import Conversation
from .models import Message, Role

__all__ = ["Conversation", "Message", "Role"]
