"""
Appointment scheduling service

Business rules for booking, cancelling, rescheduling and re-labelling
appointments between a provider and a requester:
- a provider never holds two active appointments at the same instant
- both parties must exist in their directory when booking
- cancellation is a soft delete through the status field
"""
from __future__ import annotations
import logging
from datetime import date, datetime, time
from .directory import PartyDirectory
from .errors import Conflict, InvalidInput, NotFound
from .models import BOOKED, CANCELLED, Appointment, BookRequest
from .store import SchedulingStore

logger = logging.getLogger(__name__)


def day_window(day: date) -> tuple[datetime, datetime]:
    """Inclusive [00:00, 23:59:59.999999] window of a calendar day."""
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


class SchedulingService:
    """Stateless orchestration over the party directories and the appointment store."""

    def __init__(
        self,
        providers: PartyDirectory,
        requesters: PartyDirectory,
        store: SchedulingStore,
    ):
        self.providers = providers
        self.requesters = requesters
        self.store = store

    async def book(self, request: BookRequest | None) -> Appointment:
        """
        Book an appointment.

        Checks run in a fixed order and the first failure wins:
        payload, provider_id, requester_id, scheduled_time, provider exists,
        requester exists, slot free. Nothing is written unless all pass.
        """
        if request is None:
            raise InvalidInput("Appointment data is required")
        if not request.provider_id:
            raise InvalidInput("provider_id is required")
        if not request.requester_id:
            raise InvalidInput("requester_id is required")
        if request.scheduled_time is None:
            raise InvalidInput("scheduled_time is required")

        if await self.providers.resolve(request.provider_id) is None:
            logger.warning("Booking rejected, unknown provider %s", request.provider_id)
            raise NotFound(f"Provider not found: {request.provider_id}")
        if await self.requesters.resolve(request.requester_id) is None:
            logger.warning("Booking rejected, unknown requester %s", request.requester_id)
            raise NotFound(f"Requester not found: {request.requester_id}")

        if await self.store.exists_for_provider_at_time(request.provider_id, request.scheduled_time):
            logger.warning(
                "Booking rejected, provider %s already booked at %s",
                request.provider_id,
                request.scheduled_time.isoformat(),
            )
            raise Conflict(
                f"Requested time slot is already taken for provider {request.provider_id}"
            )

        # The store enforces the same uniqueness, so a concurrent booking that
        # slipped past the check above still surfaces as Conflict here.
        appointment = await self.store.insert(
            Appointment(
                provider_id=request.provider_id,
                requester_id=request.requester_id,
                scheduled_time=request.scheduled_time,
                status=request.status or BOOKED,
            )
        )
        logger.info(
            "Appointment %s booked: provider=%s requester=%s at %s",
            appointment.id,
            appointment.provider_id,
            appointment.requester_id,
            appointment.scheduled_time.isoformat(),
        )
        return appointment

    async def get(self, appointment_id: str | None) -> Appointment:
        if not appointment_id:
            raise InvalidInput("appointment_id is required")
        appointment = await self.store.find_by_id(appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment not found: {appointment_id}")
        return appointment

    async def list_for_provider_on_date(
        self, provider_id: str | None, day: date | None, requester_name: str | None = None
    ) -> list[Appointment]:
        """Appointments of a provider on one calendar day, in store order.

        The day is matched on each appointment's wall-clock time as booked.
        The provider is not checked against the directory. With
        ``requester_name`` only appointments whose requester's name contains
        it (case-insensitive) are kept; requesters that no longer resolve
        are dropped.
        """
        if not provider_id:
            raise InvalidInput("provider_id is required")
        if day is None:
            raise InvalidInput("date is required")
        start, end = day_window(day)
        found = await self.store.find_by_provider_and_time_range(provider_id, start, end)
        if not requester_name:
            return found

        matches: dict[str, bool] = {}
        for appointment in found:
            if appointment.requester_id not in matches:
                party = await self.requesters.resolve(appointment.requester_id)
                matches[appointment.requester_id] = bool(party and party.matches_name(requester_name))
        return [a for a in found if matches[a.requester_id]]

    async def list_for_requester(self, requester_id: str | None) -> list[Appointment]:
        if not requester_id:
            raise InvalidInput("requester_id is required")
        return await self.store.find_by_requester(requester_id)

    async def cancel(self, appointment_id: str | None, cancelled_by: str | None = None) -> Appointment:
        """
        Cancel (soft delete) an appointment by setting its status to CANCELLED.

        cancelled_by is recorded for audit only. Cancelling an already
        cancelled appointment succeeds and keeps the first audit stamp.
        """
        appointment = await self.get(appointment_id)
        if appointment.status == CANCELLED:
            logger.info("Appointment %s already cancelled", appointment.id)
            return await self.store.update(appointment)

        appointment.status = CANCELLED
        appointment.cancelled_by = cancelled_by
        appointment.cancelled_at = datetime.now()
        updated = await self.store.update(appointment)
        logger.info("Appointment %s cancelled by %s", updated.id, cancelled_by or "unknown")
        return updated

    async def change_status(self, appointment_id: str | None, status: str | None) -> Appointment:
        """Overwrite the status label; transitions are not validated here."""
        if not appointment_id:
            raise InvalidInput("appointment_id is required")
        if not status:
            raise InvalidInput("status is required")
        appointment = await self.get(appointment_id)

        if appointment.status == CANCELLED and status != CANCELLED:
            logger.warning("Appointment %s reopened from CANCELLED to %s", appointment.id, status)
        appointment.status = status
        updated = await self.store.update(appointment)
        logger.info("Appointment %s status set to %s", updated.id, status)
        return updated

    async def reschedule(
        self, appointment_id: str | None, scheduled_time: datetime | None
    ) -> Appointment:
        """Move an active appointment to a new time on the same provider."""
        if not appointment_id:
            raise InvalidInput("appointment_id is required")
        if scheduled_time is None:
            raise InvalidInput("scheduled_time is required")
        appointment = await self.get(appointment_id)
        if appointment.status == CANCELLED:
            raise InvalidInput(f"Appointment {appointment.id} is cancelled and cannot be rescheduled")
        if appointment.scheduled_time == scheduled_time:
            return appointment

        if await self.store.exists_for_provider_at_time(appointment.provider_id, scheduled_time):
            logger.warning(
                "Reschedule of %s rejected, provider %s already booked at %s",
                appointment.id,
                appointment.provider_id,
                scheduled_time.isoformat(),
            )
            raise Conflict(
                f"Requested time slot is already taken for provider {appointment.provider_id}"
            )

        previous = appointment.scheduled_time
        appointment.scheduled_time = scheduled_time
        updated = await self.store.update(appointment)
        logger.info(
            "Appointment %s moved from %s to %s",
            updated.id,
            previous.isoformat(),
            scheduled_time.isoformat(),
        )
        return updated
