"""SQL appointment store built on SQLAlchemy Core and the async databases driver.

Scheduled times are kept three ways: the ISO text exactly as given (offset
included), the slot key used for uniqueness, and the wall-clock time used
for day-window queries. SQLite's DateTime type would drop the offset.
"""
from __future__ import annotations
import logging
import sqlite3
from datetime import datetime
import sqlalchemy
from databases import Database
from . import config
from .errors import Conflict, StoreError
from .models import CANCELLED, Appointment, slot_key, wall_clock

logger = logging.getLogger(__name__)

metadata = sqlalchemy.MetaData()

appointments = sqlalchemy.Table(
    "appointments",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("provider_id", sqlalchemy.String, nullable=False, index=True),
    sqlalchemy.Column("requester_id", sqlalchemy.String, nullable=False, index=True),
    sqlalchemy.Column("scheduled_time", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("slot_key", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("local_time", sqlalchemy.DateTime, nullable=False, index=True),
    sqlalchemy.Column("status", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("cancelled_by", sqlalchemy.String, nullable=True),
    sqlalchemy.Column("cancelled_at", sqlalchemy.DateTime, nullable=True),
)

# One active appointment per provider and instant; cancelled rows free the slot
sqlalchemy.Index(
    "uq_appointments_active_slot",
    appointments.c.provider_id,
    appointments.c.slot_key,
    unique=True,
    sqlite_where=appointments.c.status != CANCELLED,
    postgresql_where=appointments.c.status != CANCELLED,
)

# SQLite INTEGER and Postgres BIGINT are signed 64-bit
_MAX_ROW_ID = 2**63 - 1


def _is_unique_violation(exc: Exception) -> bool:
    if isinstance(exc, sqlite3.IntegrityError):
        return "UNIQUE" in str(exc).upper()
    # asyncpg / psycopg report unique violations under these class names
    return type(exc).__name__ in ("UniqueViolationError", "UniqueViolation")


def _time_columns(scheduled_time: datetime) -> dict:
    return {
        "scheduled_time": scheduled_time.isoformat(),
        "slot_key": slot_key(scheduled_time),
        "local_time": wall_clock(scheduled_time),
    }


def _to_appointment(row) -> Appointment:
    return Appointment(
        id=str(row["id"]),
        provider_id=row["provider_id"],
        requester_id=row["requester_id"],
        scheduled_time=datetime.fromisoformat(row["scheduled_time"]),
        status=row["status"],
        cancelled_by=row["cancelled_by"],
        cancelled_at=row["cancelled_at"],
    )


def _row_id(appointment_id: str) -> int | None:
    try:
        row_id = int(appointment_id)
    except (TypeError, ValueError):
        return None
    # out-of-range ids cannot exist and would overflow the driver
    return row_id if -_MAX_ROW_ID - 1 <= row_id <= _MAX_ROW_ID else None


class SqlSchedulingStore:
    def __init__(self, database_url: str = config.DATABASE_URL):
        self.database_url = database_url
        self.database = Database(database_url)

    def create_schema(self) -> None:
        """Create the appointments table and its indexes if missing."""
        engine = sqlalchemy.create_engine(self.database_url)
        try:
            metadata.create_all(engine)
        finally:
            engine.dispose()

    async def connect(self) -> None:
        await self.database.connect()

    async def disconnect(self) -> None:
        await self.database.disconnect()

    async def _execute(self, query, slot_owner: str | None = None):
        try:
            return await self.database.execute(query)
        except Exception as exc:
            if _is_unique_violation(exc):
                raise Conflict(
                    f"Requested time slot is already taken for provider {slot_owner}"
                ) from exc
            logger.error("Appointment store write failed: %s", exc)
            raise StoreError("Appointment store write failed") from exc

    async def _fetch_all(self, query) -> list[Appointment]:
        try:
            rows = await self.database.fetch_all(query)
        except Exception as exc:
            logger.error("Appointment store read failed: %s", exc)
            raise StoreError("Appointment store read failed") from exc
        return [_to_appointment(row) for row in rows]

    async def insert(self, appointment: Appointment) -> Appointment:
        query = appointments.insert().values(
            provider_id=appointment.provider_id,
            requester_id=appointment.requester_id,
            **_time_columns(appointment.scheduled_time),
            status=appointment.status,
            cancelled_by=appointment.cancelled_by,
            cancelled_at=appointment.cancelled_at,
        )
        if self.database.url.dialect == "postgresql":
            # asyncpg hands back the first returned column instead of lastrowid
            query = query.returning(appointments.c.id)
        new_id = await self._execute(query, slot_owner=appointment.provider_id)
        return appointment.model_copy(update={"id": str(new_id)})

    async def exists_for_provider_at_time(
        self, provider_id: str, scheduled_time: datetime, exclude_status: str = CANCELLED
    ) -> bool:
        query = (
            sqlalchemy.select(appointments.c.id)
            .where(
                appointments.c.provider_id == provider_id,
                appointments.c.slot_key == slot_key(scheduled_time),
                appointments.c.status != exclude_status,
            )
            .limit(1)
        )
        try:
            row = await self.database.fetch_one(query)
        except Exception as exc:
            logger.error("Appointment store read failed: %s", exc)
            raise StoreError("Appointment store read failed") from exc
        return row is not None

    async def find_by_id(self, appointment_id: str) -> Appointment | None:
        row_id = _row_id(appointment_id)
        if row_id is None:
            return None
        found = await self._fetch_all(appointments.select().where(appointments.c.id == row_id))
        return found[0] if found else None

    async def find_by_provider_and_time_range(
        self, provider_id: str, start: datetime, end: datetime
    ) -> list[Appointment]:
        query = appointments.select().where(
            appointments.c.provider_id == provider_id,
            appointments.c.local_time.between(wall_clock(start), wall_clock(end)),
        )
        return await self._fetch_all(query)

    async def find_by_requester(self, requester_id: str) -> list[Appointment]:
        return await self._fetch_all(
            appointments.select().where(appointments.c.requester_id == requester_id)
        )

    async def update(self, appointment: Appointment) -> Appointment:
        query = (
            appointments.update()
            .where(appointments.c.id == _row_id(appointment.id))
            .values(
                **_time_columns(appointment.scheduled_time),
                status=appointment.status,
                cancelled_by=appointment.cancelled_by,
                cancelled_at=appointment.cancelled_at,
            )
        )
        await self._execute(query, slot_owner=appointment.provider_id)
        stored = await self.find_by_id(appointment.id)
        if stored is None:
            raise StoreError(f"Appointment {appointment.id} vanished during update")
        return stored
