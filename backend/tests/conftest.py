from datetime import datetime, timedelta, timezone

import pytest

from kwikq.config import Settings
from kwikq.models.business import Branch, Organization
from kwikq.models.ticket import FormDetails, TicketCreate
from kwikq.services.queue_service import QueueService
from kwikq.stores.memory import (
    InMemoryBusinessDirectory,
    InMemorySequenceStore,
    InMemoryTicketStore,
)

# Tuesday 2026-03-10, 10:00 in Lagos (UTC+1)
T0 = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send(self, ticket, business_name):
        if self.fail:
            raise ConnectionRefusedError("mail relay unreachable")
        self.sent.append((ticket.ticket_number, business_name))


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def directory():
    d = InMemoryBusinessDirectory()
    d.add(Branch(_id="B1", name="Lekki Branch", branch_code="LEK", timezone="Africa/Lagos"))
    d.add(Organization(_id="ORG1", name="Solo Clinic", kind="individual"))
    return d


@pytest.fixture
def tickets():
    return InMemoryTicketStore()


@pytest.fixture
def sequences():
    return InMemorySequenceStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def service(directory, tickets, sequences, notifier, clock, settings):
    return QueueService(directory, tickets, sequences, notifier, clock=clock, settings=settings)


@pytest.fixture
def make_request():
    def _make(
        name="Ada Obi",
        service_needed="accountOpening",
        priority_status="regularStandard",
        queue_point_id=None,
    ):
        return TicketCreate(
            form_details=FormDetails(
                full_name=name,
                email="ada.obi@kwikq.ng",
                service_needed=service_needed,
                priority_status=priority_status,
            ),
            queue_point_id=queue_point_id,
        )
    return _make
