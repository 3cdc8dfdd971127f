from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class ChatMessage(BaseModel):
    """A displayable message handed to the presentation layer."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    text: str
    sender: Literal["user", "bot"] = "bot"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ToolCommand(BaseModel):
    """An explicit tool request from the presentation layer (e.g. sign-in form)."""

    tool_name: str
    arguments: dict = Field(default_factory=dict)

    @field_validator("tool_name")
    @classmethod
    def _normalize_tool_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("tool_name must not be empty")
        return v


class AssistantStatus(BaseModel):
    connected: bool
    health_ok: bool
    attempts: int
    state: str
    last_error: str | None = None
    authenticated: bool = False
