"""Presence tracking: registration, heartbeats and the stale-participant sweep.

State per participant::

    absent --register--> active --heartbeat--> active --sweep--> absent

Re-registering after eviction is a fresh registration. Uniqueness of names
is enforced by the store's insert-if-absent, never by a prior lookup.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

import pydantic

from batepapo import metrics as m
from batepapo.errors import Conflict, NotFound, StoreError, ValidationError
from batepapo.models import (
    JOINED_TEXT,
    LEFT_TEXT,
    ParticipantIn,
    now_ms,
    status_message,
)
from batepapo.store import ChatStore

logger = logging.getLogger(__name__)

# Upper bound on reap units running at once within one sweep
MAX_CONCURRENT_REAPS = 8


@dataclass
class SweepReport:
    """Outcome of one sweep."""

    removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    # Stale at scan time but refreshed (or already gone) before the delete
    skipped: list[str] = field(default_factory=list)


class PresenceTracker:
    """Owns participant liveness. Reads and writes go straight to the store."""

    def __init__(self, store: ChatStore, clock: Callable[[], int] = now_ms) -> None:
        self._store = store
        self._clock = clock

    async def list_participants(self) -> list[dict]:
        return await self._store.list_participants()

    async def register(self, name) -> dict:
        """Create an active participant and announce it to everyone.

        Raises:
            ValidationError: ``name`` is missing, not a string, or blank.
            Conflict: an active participant already uses ``name``.
        """
        try:
            payload = ParticipantIn.model_validate({"name": name})
        except pydantic.ValidationError as e:
            raise ValidationError(f"invalid participant name: {name!r}") from e

        participant = {"name": payload.name, "lastStatus": self._clock()}
        await self._store.insert_participant(participant["name"], participant["lastStatus"])
        try:
            await self._store.insert_message(
                status_message(payload.name, JOINED_TEXT).to_document()
            )
        except StoreError:
            # Undo the insert so a retry is not refused with Conflict
            await self._discard(participant)
            raise
        m.participants_registered_total.inc()
        logger.info("Participant joined: %s", payload.name)
        return participant

    async def _discard(self, participant: dict) -> None:
        try:
            await self._store.delete_participant(participant["name"], participant["lastStatus"])
        except StoreError:
            logger.error(
                "Could not roll back registration of %s", participant["name"], exc_info=True,
            )

    async def heartbeat(self, name: str | None) -> None:
        """Refresh the eviction timer of ``name``; raises NotFound if not active."""
        name = (name or "").strip()
        if not name or not await self._store.touch_participant(name, self._clock()):
            raise NotFound(f"participant '{name}' is not active")

    async def sweep(self, stale_threshold_ms: int, now: int) -> SweepReport:
        """Evict every participant with ``now - lastStatus >= stale_threshold_ms``.

        Each stale participant is reaped as an independent unit (delete, then
        a "left" status message). If the message cannot be written the
        participant is put back unchanged, so the next sweep retries the unit. Units run concurrently and a failing unit is
        recorded in the report without affecting the others. Failure to list
        stale participants propagates as ``StoreError``.
        """
        cutoff = now - stale_threshold_ms
        stale = await self._store.find_stale_participants(cutoff)
        report = SweepReport()
        if not stale:
            return report

        semaphore = asyncio.Semaphore(MAX_CONCURRENT_REAPS)

        async def _bounded(participant: dict) -> bool:
            async with semaphore:
                return await self._reap_one(participant, cutoff)

        names = [p["name"] for p in stale]
        results = await asyncio.gather(
            *(_bounded(p) for p in stale), return_exceptions=True,
        )

        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                report.failed.append(name)
                m.reaper_unit_failures_total.inc()
                logger.error(
                    "Failed to reap participant %s: %s", name, result,
                    exc_info=(type(result), result, result.__traceback__),
                )
            elif result:
                report.removed.append(name)
            else:
                report.skipped.append(name)

        if report.removed:
            m.participants_reaped_total.inc(len(report.removed))
        return report

    async def _reap_one(self, participant: dict, cutoff: int) -> bool:
        name = participant["name"]
        # Conditional delete: a heartbeat that landed after the scan keeps the participant
        if not await self._store.delete_participant_if_stale(name, cutoff):
            return False
        try:
            await self._store.insert_message(status_message(name, LEFT_TEXT).to_document())
        except StoreError:
            # Put the participant back so the next tick retries the whole unit
            await self._restore(participant)
            raise
        logger.info("Participant left (inactive): %s", name)
        return True

    async def _restore(self, participant: dict) -> None:
        try:
            await self._store.insert_participant(participant["name"], participant["lastStatus"])
        except Conflict:
            logger.info("Participant %s re-registered before restore", participant["name"])
        except StoreError:
            logger.error("Could not restore participant %s", participant["name"], exc_info=True)
