# docchat/history/models.py
from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant"]


class Message(BaseModel):
    """
    A single chat message. Assistant replies start empty and grow in place.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    content: str = ""

    def to_payload(self) -> dict[str, str]:
        """Wire shape sent to the service; local ids are stripped."""
        return {"role": self.role, "content": self.content}
