"""Message submission by active participants."""

from __future__ import annotations

import logging

import pydantic

from batepapo import metrics as m
from batepapo.errors import ValidationError
from batepapo.models import Message, MessageIn, MessageType, format_time
from batepapo.store import ChatStore

logger = logging.getLogger(__name__)


class MessageService:
    def __init__(self, store: ChatStore) -> None:
        self._store = store

    async def submit(
        self,
        sender: str | None,
        to: str | None,
        text: str | None,
        msg_type: str | MessageType | None,
    ) -> dict:
        """Store a message from ``sender``.

        ``sender`` is the identity established by the request (the ``user``
        header), never a body field. An unknown sender is reported as a
        ValidationError, the same as a malformed body.
        """
        try:
            payload = MessageIn.model_validate({"to": to, "text": text, "type": msg_type})
        except pydantic.ValidationError as e:
            raise ValidationError(f"invalid message: {e.error_count()} error(s)") from e

        sender = (sender or "").strip()
        if not sender or await self._store.find_participant(sender) is None:
            raise ValidationError(f"sender '{sender}' is not an active participant")

        message = Message(
            from_=sender,
            to=payload.to,
            text=payload.text,
            type=payload.type,
            time=format_time(),
        ).to_document()
        await self._store.insert_message(message)
        m.messages_posted_total.labels(type=payload.type.value).inc()
        logger.debug("Message stored: from=%s to=%s type=%s", sender, payload.to, payload.type.value)
        return message
