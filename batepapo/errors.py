"""Domain errors raised by the chat core.

Each error carries the HTTP status it maps to; the FastAPI app registers a
single handler for ``ChatError`` (see main.py).
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for every error the chat core raises."""

    status_code: int = 500


class ValidationError(ChatError):
    """Malformed or missing field, disallowed message type, or unknown sender."""

    status_code = 422


class Conflict(ChatError):
    """A participant with the same name is already active."""

    status_code = 409


class NotFound(ChatError):
    """No active participant matches the requested name."""

    status_code = 404


class StoreError(ChatError):
    """Any store or connectivity failure, including per-operation timeouts."""

    status_code = 500
