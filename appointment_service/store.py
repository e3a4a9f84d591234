"""Appointment store contract and an in-memory implementation.

Stores own the uniqueness of (provider_id, scheduled_time) among
non-cancelled appointments: an insert or update that would break it
raises Conflict, which makes the service's check-then-insert atomic.
"""
from __future__ import annotations
import asyncio
import itertools
from datetime import datetime
from typing import Protocol
from .errors import Conflict, NotFound
from .models import CANCELLED, Appointment, slot_key, wall_clock


class SchedulingStore(Protocol):
    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def insert(self, appointment: Appointment) -> Appointment: ...

    async def exists_for_provider_at_time(
        self, provider_id: str, scheduled_time: datetime, exclude_status: str = CANCELLED
    ) -> bool: ...

    async def find_by_id(self, appointment_id: str) -> Appointment | None: ...

    async def find_by_provider_and_time_range(
        self, provider_id: str, start: datetime, end: datetime
    ) -> list[Appointment]: ...

    async def find_by_requester(self, requester_id: str) -> list[Appointment]: ...

    async def update(self, appointment: Appointment) -> Appointment: ...


class InMemorySchedulingStore:
    """Dict-backed store; returns copies so callers never mutate stored state."""

    def __init__(self):
        self._rows: dict[str, Appointment] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None

    def _slot_taken(self, appointment: Appointment) -> bool:
        return any(
            row.id != appointment.id
            and row.is_active
            and row.provider_id == appointment.provider_id
            and slot_key(row.scheduled_time) == slot_key(appointment.scheduled_time)
            for row in self._rows.values()
        )

    async def insert(self, appointment: Appointment) -> Appointment:
        async with self._lock:
            row = appointment.model_copy(update={"id": str(next(self._ids))})
            if row.is_active and self._slot_taken(row):
                raise Conflict(
                    f"Requested time slot is already taken for provider {row.provider_id}"
                )
            self._rows[row.id] = row
            return row.model_copy()

    async def exists_for_provider_at_time(
        self, provider_id: str, scheduled_time: datetime, exclude_status: str = CANCELLED
    ) -> bool:
        key = slot_key(scheduled_time)
        return any(
            row.provider_id == provider_id
            and slot_key(row.scheduled_time) == key
            and row.status != exclude_status
            for row in self._rows.values()
        )

    async def find_by_id(self, appointment_id: str) -> Appointment | None:
        row = self._rows.get(appointment_id)
        return row.model_copy() if row else None

    async def find_by_provider_and_time_range(
        self, provider_id: str, start: datetime, end: datetime
    ) -> list[Appointment]:
        # Bounds and rows are compared on wall-clock time, whatever their offsets
        start, end = wall_clock(start), wall_clock(end)
        return [
            row.model_copy()
            for row in self._rows.values()
            if row.provider_id == provider_id and start <= wall_clock(row.scheduled_time) <= end
        ]

    async def find_by_requester(self, requester_id: str) -> list[Appointment]:
        return [row.model_copy() for row in self._rows.values() if row.requester_id == requester_id]

    async def update(self, appointment: Appointment) -> Appointment:
        async with self._lock:
            if appointment.id not in self._rows:
                raise NotFound(f"Appointment not found: {appointment.id}")
            if appointment.is_active and self._slot_taken(appointment):
                raise Conflict(
                    f"Requested time slot is already taken for provider {appointment.provider_id}"
                )
            self._rows[appointment.id] = appointment.model_copy()
            return appointment.model_copy()
