"""Data models for chat sessions, settings and sketches."""

from __future__ import annotations

import base64
import time
import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import (
    CHAT_MODELS,
    COLLECTION_VERSION,
    DEFAULT_CHAT_MODEL,
    DEFAULT_IMAGE_MODEL,
    DEFAULT_TITLE,
    IMAGE_MODELS,
)


class Role(str, Enum):
    """Message sender role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: Role
    content: str

    @classmethod
    def image(cls, mime_type: str, data: str, role: Role = Role.ASSISTANT) -> Message:
        """Build a message carrying a base64 image as a data URI."""
        return cls(role=role, content=f"data:{mime_type};base64,{data}")

    @property
    def is_image(self) -> bool:
        return self.content.startswith("data:image/") and ";base64," in self.content

    def image_bytes(self) -> bytes | None:
        """Decode the image payload, or None for text messages."""
        if not self.is_image:
            return None
        return base64.b64decode(self.content.split(",", 1)[1])


def _new_id() -> str:
    return str(uuid.uuid4())


class ChatSession(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str = DEFAULT_TITLE
    messages: list[Message] = []
    last_modified: float = Field(default_factory=time.time)

    def touch(self) -> None:
        self.last_modified = time.time()


class SessionCollection(BaseModel):
    """Versioned envelope for the persisted session list."""

    version: int = COLLECTION_VERSION
    sessions: list[ChatSession] = []


class Settings(BaseModel):
    mistral_key: str = ""
    gemini_key: str = ""
    chat_model: str = DEFAULT_CHAT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL

    @field_validator("mistral_key", "gemini_key")
    @classmethod
    def _strip_key(cls, value: str) -> str:
        return value.strip()

    @field_validator("chat_model")
    @classmethod
    def _known_chat_model(cls, value: str) -> str:
        if value not in CHAT_MODELS:
            raise ValueError(f"Unknown chat model: {value}")
        return value

    @field_validator("image_model")
    @classmethod
    def _known_image_model(cls, value: str) -> str:
        if value not in IMAGE_MODELS:
            raise ValueError(f"Unknown image model: {value}")
        return value


class Point(BaseModel):
    x: float
    y: float


class LineSegment(BaseModel):
    start: Point
    end: Point
    color: str = "#000000"
    width: float = 5.0


class Stroke(BaseModel):
    """One continuous pointer drag, as an ordered list of segments."""

    segments: list[LineSegment] = []
