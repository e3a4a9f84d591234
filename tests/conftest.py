import pytest
from appointment_service.directory import InMemoryPartyDirectory
from appointment_service.models import Party
from appointment_service.service import SchedulingService
from appointment_service.store import InMemorySchedulingStore


@pytest.fixture
def providers():
    return InMemoryPartyDirectory([Party(id="P1", given_name="Ada", family_name="Okafor")])

@pytest.fixture
def requesters():
    return InMemoryPartyDirectory([
        Party(id="R1", given_name="John", family_name="Doe"),
        Party(id="R2", given_name="Mary", family_name="Major"),
    ])

@pytest.fixture
def store():
    return InMemorySchedulingStore()

@pytest.fixture
def service(providers, requesters, store):
    return SchedulingService(providers=providers, requesters=requesters, store=store)
