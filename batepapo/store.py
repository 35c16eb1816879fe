"""Document store adapter for participants and messages.

``ChatStore`` is the contract the core consumes; ``MongoChatStore`` is the
motor-backed implementation used in production.

Collections:
- participants: ``{name, lastStatus}``, unique index on ``name``
- messages: ``{from, to, text, type, time}``, ordered by ``_id``

Every Mongo call goes through ``_run`` which bounds it with the configured
timeout and turns driver failures into ``StoreError``. Motor checks a pooled
connection out per operation and returns it on every exit path, so no
operation holds a connection past its own await.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from batepapo.errors import Conflict, StoreError

logger = logging.getLogger(__name__)

PARTICIPANTS = "participants"
MESSAGES = "messages"


class ChatStore(ABC):
    """Query contract over the participants and messages collections."""

    async def init(self) -> None:
        """Open connections and ensure indexes."""

    async def close(self) -> None:
        """Release connections."""

    @abstractmethod
    async def list_participants(self) -> list[dict]:
        ...

    @abstractmethod
    async def find_participant(self, name: str) -> dict | None:
        ...

    @abstractmethod
    async def insert_participant(self, name: str, last_status: int) -> None:
        """Insert-if-absent. Raises ``Conflict`` when the name is taken."""

    @abstractmethod
    async def touch_participant(self, name: str, last_status: int) -> bool:
        """Set ``lastStatus``. Returns False when no participant matched."""

    @abstractmethod
    async def delete_participant(self, name: str, last_status: int) -> bool:
        """Delete exactly the record ``{name, lastStatus: last_status}``."""

    @abstractmethod
    async def find_stale_participants(self, cutoff: int) -> list[dict]:
        """Participants whose ``lastStatus`` is at or before ``cutoff``."""

    @abstractmethod
    async def delete_participant_if_stale(self, name: str, cutoff: int) -> bool:
        """Delete ``name`` only while still stale. Returns True if deleted."""

    @abstractmethod
    async def insert_message(self, message: dict) -> None:
        ...

    @abstractmethod
    async def find_latest_messages(
        self, query: dict, limit: int | None = None,
    ) -> list[dict]:
        """Messages matching ``query``, newest first, at most ``limit`` of them."""


class MongoChatStore(ChatStore):
    """MongoDB implementation of ``ChatStore`` (motor).

    Lifecycle:
    - init() called from main.py lifespan startup
    - close() called from main.py lifespan shutdown
    """

    def __init__(
        self,
        url: str,
        database: str,
        timeout_s: float = 5.0,
        server_selection_timeout_ms: int = 5000,
    ) -> None:
        self._url = url
        self._database = database
        self._timeout_s = timeout_s
        self._server_selection_timeout_ms = server_selection_timeout_ms
        self._client: AsyncIOMotorClient | None = None
        self._participants: AsyncIOMotorCollection | None = None
        self._messages: AsyncIOMotorCollection | None = None

    async def init(self) -> None:
        self._client = AsyncIOMotorClient(
            self._url,
            serverSelectionTimeoutMS=self._server_selection_timeout_ms,
        )
        db = self._client[self._database]
        self._participants = db[PARTICIPANTS]
        self._messages = db[MESSAGES]

        await self._run(
            "create_index",
            self._participants.create_index([("name", ASCENDING)], unique=True),
        )
        logger.info("Connected to MongoDB: %s", self._database)

    async def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
            self._participants = None
            self._messages = None
            logger.info("MongoDB connection closed")

    @property
    def participants(self) -> AsyncIOMotorCollection:
        if self._participants is None:
            raise RuntimeError("Chat store not initialized. Call init() first.")
        return self._participants

    @property
    def messages(self) -> AsyncIOMotorCollection:
        if self._messages is None:
            raise RuntimeError("Chat store not initialized. Call init() first.")
        return self._messages

    async def _run(self, op: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout_s)
        except asyncio.TimeoutError as e:
            raise StoreError(f"{op} timed out after {self._timeout_s}s") from e
        except DuplicateKeyError:
            raise
        except PyMongoError as e:
            raise StoreError(f"{op} failed: {e}") from e

    async def list_participants(self) -> list[dict]:
        cursor = self.participants.find({}, {"_id": 0})
        return await self._run("list_participants", cursor.to_list(length=None))

    async def find_participant(self, name: str) -> dict | None:
        return await self._run(
            "find_participant",
            self.participants.find_one({"name": name}, {"_id": 0}),
        )

    async def insert_participant(self, name: str, last_status: int) -> None:
        try:
            await self._run(
                "insert_participant",
                self.participants.insert_one({"name": name, "lastStatus": last_status}),
            )
        except DuplicateKeyError as e:
            raise Conflict(f"participant '{name}' already exists") from e

    async def touch_participant(self, name: str, last_status: int) -> bool:
        result = await self._run(
            "touch_participant",
            self.participants.update_one(
                {"name": name}, {"$set": {"lastStatus": last_status}},
            ),
        )
        return result.matched_count > 0

    async def delete_participant(self, name: str, last_status: int) -> bool:
        result = await self._run(
            "delete_participant",
            self.participants.delete_one({"name": name, "lastStatus": last_status}),
        )
        return result.deleted_count > 0

    async def find_stale_participants(self, cutoff: int) -> list[dict]:
        cursor = self.participants.find({"lastStatus": {"$lte": cutoff}}, {"_id": 0})
        return await self._run("find_stale_participants", cursor.to_list(length=None))

    async def delete_participant_if_stale(self, name: str, cutoff: int) -> bool:
        result = await self._run(
            "delete_participant",
            self.participants.delete_one(
                {"name": name, "lastStatus": {"$lte": cutoff}},
            ),
        )
        return result.deleted_count > 0

    async def insert_message(self, message: dict) -> None:
        # insert_one adds _id to the dict it is given
        await self._run("insert_message", self.messages.insert_one(dict(message)))

    async def find_latest_messages(
        self, query: dict, limit: int | None = None,
    ) -> list[dict]:
        cursor = self.messages.find(query, {"_id": 0}).sort("_id", DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return await self._run("find_latest_messages", cursor.to_list(length=None))
