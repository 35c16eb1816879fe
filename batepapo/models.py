"""Data models for the chat service.

Participants and messages are stored as plain documents; the pydantic models
here validate inbound payloads and build the documents the store persists.
"""

from __future__ import annotations

import time
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Recipient sentinel meaning "broadcast to every participant"
EVERYONE = "Todos"

JOINED_TEXT = "entra na sala..."
LEFT_TEXT = "sai da sala..."


class MessageType(str, Enum):
    MESSAGE = "message"                  # public
    PRIVATE_MESSAGE = "private_message"  # sender and recipient only
    STATUS = "status"                    # system join/leave notice, always broadcast


# Types a participant may post; STATUS is reserved for the system
POSTABLE_TYPES = (MessageType.MESSAGE, MessageType.PRIVATE_MESSAGE)


# --- Inbound payloads ---


class ParticipantIn(BaseModel):
    """Body of POST /participants."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)


class MessageIn(BaseModel):
    """Body of POST /messages. The sender comes from the ``user`` header."""

    model_config = ConfigDict(str_strip_whitespace=True)

    to: str = Field(min_length=1)
    text: str = Field(min_length=1)
    type: MessageType

    @field_validator("type")
    @classmethod
    def _postable(cls, value: MessageType) -> MessageType:
        if value not in POSTABLE_TYPES:
            raise ValueError(f"message type '{value.value}' cannot be posted")
        return value


# --- Stored documents ---


class Participant(BaseModel):
    name: str
    lastStatus: int


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from")
    to: str
    text: str
    type: MessageType
    time: str

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def format_time(moment: datetime | None = None) -> str:
    """Human-readable local wall-clock time stamped on every message."""
    return (moment or datetime.now()).strftime("%H:%M:%S")


def status_message(name: str, text: str) -> Message:
    """System notice addressed to everyone, e.g. ``Alice entra na sala...``."""
    return Message(
        from_=name,
        to=EVERYONE,
        text=text,
        type=MessageType.STATUS,
        time=format_time(),
    )
