import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from . import config
from .client import HttpPartyDirectory
from .database import SqlSchedulingStore
from .directory import InMemoryPartyDirectory
from .errors import SchedulingError
from .models import Appointment, BookRequest, CancelRequest, Party, RescheduleRequest, StatusChangeRequest
from .service import SchedulingService
from .store import InMemorySchedulingStore

logger = logging.getLogger(__name__)


def build_service() -> SchedulingService:
    """Wire the service from configuration. OFFLINE_MODE keeps everything in memory."""
    if config.OFFLINE_MODE:
        return SchedulingService(
            providers=InMemoryPartyDirectory([Party(id=p) for p in config.OFFLINE_PROVIDER_IDS]),
            requesters=InMemoryPartyDirectory([Party(id=r) for r in config.OFFLINE_REQUESTER_IDS]),
            store=InMemorySchedulingStore(),
        )
    store = SqlSchedulingStore(config.DATABASE_URL)
    store.create_schema()
    return SchedulingService(
        providers=HttpPartyDirectory("Practitioner"),
        requesters=HttpPartyDirectory("Patient"),
        store=store,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.configure_logging()
    service = build_service()
    await service.store.connect()
    app.state.service = service
    logger.info("Appointment service started (offline=%s)", config.OFFLINE_MODE)
    try:
        yield
    finally:
        await service.store.disconnect()


app = FastAPI(title="Appointment Scheduling Service", lifespan=lifespan)


def get_service(request: Request) -> SchedulingService:
    return request.app.state.service


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health")
async def health():
    return {"status": "ok"}

# Booking and lifecycle endpoints -------------------------------------------

@app.post("/appointments", response_model=Appointment, status_code=201)
async def book_appointment(
    req: Optional[BookRequest] = Body(None),
    service: SchedulingService = Depends(get_service),
):
    """Book a provider/requester pair into a time slot."""
    return await service.book(req)

@app.get("/appointments/{appointment_id}", response_model=Appointment)
async def get_appointment(appointment_id: str, service: SchedulingService = Depends(get_service)):
    return await service.get(appointment_id)

@app.post("/appointments/{appointment_id}/cancel", response_model=Appointment)
async def cancel_appointment(
    appointment_id: str,
    req: Optional[CancelRequest] = Body(None),
    service: SchedulingService = Depends(get_service),
):
    """Cancel an appointment. Cancelling twice is accepted."""
    cancelled_by = req.cancelled_by if req else None
    return await service.cancel(appointment_id, cancelled_by)

@app.post("/appointments/{appointment_id}/status", response_model=Appointment)
async def change_status(
    appointment_id: str,
    req: Optional[StatusChangeRequest] = Body(None),
    service: SchedulingService = Depends(get_service),
):
    return await service.change_status(appointment_id, req.status if req else None)

@app.post("/appointments/{appointment_id}/reschedule", response_model=Appointment)
async def reschedule_appointment(
    appointment_id: str,
    req: Optional[RescheduleRequest] = Body(None),
    service: SchedulingService = Depends(get_service),
):
    return await service.reschedule(appointment_id, req.scheduled_time if req else None)

# Read-only endpoints

@app.get("/providers/{provider_id}/appointments", response_model=list[Appointment])
async def provider_appointments(
    provider_id: str,
    day: date = Query(..., alias="date", description="YYYY-MM-DD calendar day"),
    requester_name: Optional[str] = Query(None, description="Keep only requesters whose name contains this"),
    service: SchedulingService = Depends(get_service),
):
    """Return a provider's appointments on one day, optionally filtered by requester name."""
    return await service.list_for_provider_on_date(provider_id, day, requester_name)

@app.get("/requesters/{requester_id}/appointments", response_model=list[Appointment])
async def requester_appointments(requester_id: str, service: SchedulingService = Depends(get_service)):
    """Return every appointment booked by a requester."""
    return await service.list_for_requester(requester_id)
