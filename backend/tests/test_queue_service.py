import asyncio
from datetime import timedelta

import pytest
from bson import ObjectId

from kwikq.errors import DependencyError, NotFound, guarded
from kwikq.models.metrics import MetricsWindow, MetricsWindowKind
from kwikq.models.ticket import FormDetails, ServiceType, TicketStatus
from kwikq.stores.mongo import _ticket_doc, _ticket_from_doc

from conftest import T0


async def test_tickets_are_numbered_in_creation_order(service, make_request):
    issued = [await service.enqueue("B1", make_request()) for _ in range(3)]

    assert [t.ticket_number for t in issued] == ["LEK-001", "LEK-002", "LEK-003"]
    assert all(t.status == TicketStatus.WAITING for t in issued)
    assert all(t.service_day == "2026-03-10" for t in issued)
    assert issued[0].joined_at == T0


async def test_tickets_rotate_over_queue_points(service, directory, make_request):
    issued = [await service.enqueue("B1", make_request()) for _ in range(4)]

    assert [t.queue_point_name for t in issued] == ["Queue 1", "Queue 2", "Queue 3", "Queue 1"]
    points = await directory.queue_points("B1")
    assert [len(p.ticket_ids) for p in points] == [2, 1, 1]
    assert points[0].last_sequence == 4


async def test_explicit_queue_point(service, directory, make_request):
    await service.enqueue("B1", make_request())
    points = await directory.queue_points("B1")

    ticket = await service.enqueue("B1", make_request(queue_point_id=points[2].id))

    assert ticket.queue_point_id == points[2].id
    assert ticket.ticket_number == "LEK-002"


async def test_unknown_queue_point_spends_no_number(service, make_request):
    with pytest.raises(NotFound):
        await service.enqueue("B1", make_request(queue_point_id=str(ObjectId())))

    ticket = await service.enqueue("B1", make_request())
    assert ticket.ticket_number == "LEK-001"


async def test_unknown_business_is_not_found(service, make_request):
    with pytest.raises(NotFound):
        await service.enqueue("nope", make_request())
    with pytest.raises(NotFound):
        await service.get_metrics("nope")


async def test_unknown_ticket_is_not_found(service):
    with pytest.raises(NotFound):
        await service.serve(str(ObjectId()))


async def test_concurrent_enqueues_get_distinct_numbers(service, tickets, make_request):
    issued = await asyncio.gather(*(service.enqueue("B1", make_request()) for _ in range(1000)))

    numbers = {t.ticket_number for t in issued}
    assert len(numbers) == 1000
    assert numbers == {f"LEK-{n:03d}" for n in range(1, 1001)}
    assert len(await tickets.query_by_status("B1", [TicketStatus.WAITING])) == 1000


async def test_intake_form_normalizes_service_and_priority(service, make_request):
    ticket = await service.enqueue(
        "B1", make_request(service_needed="Passport renewal", priority_status="emergencyOrUrgent")
    )

    assert ticket.form_details.service_needed == ServiceType.OTHER
    assert ticket.priority == 2
    assert FormDetails(full_name="A", email="a@kwikq.ng", service_needed="").service_needed is None


async def test_next_in_line_prefers_priority_then_arrival(service, clock, make_request):
    first = await service.enqueue("B1", make_request(name="First"))
    clock.advance(minutes=1)
    elderly = await service.enqueue("B1", make_request(priority_status="elderlyOrDisabled"))
    clock.advance(minutes=1)
    await service.enqueue("B1", make_request(priority_status="pregnantWoman"))

    assert (await service.next_in_line("B1")).id == elderly.id
    assert (await service.next_in_line("B1", first.queue_point_id)).id == first.id

    for t in await service.tickets.query_by_status("B1", [TicketStatus.WAITING]):
        await service.cancel(t.id)
    assert await service.next_in_line("B1") is None


async def test_queue_overview(service, make_request):
    issued = [await service.enqueue("B1", make_request()) for _ in range(4)]
    await service.serve(issued[0].id)

    overview = await service.queue_overview("B1")

    assert overview.total_waiting == 3
    assert [(p.name, p.total_tickets, p.waiting_count) for p in overview.queue_points] == [
        ("Queue 1", 2, 1),
        ("Queue 2", 1, 1),
        ("Queue 3", 1, 1),
    ]


async def test_skipped_ticket_rejoins_with_a_new_number(service, make_request):
    ticket = await service.enqueue("B1", make_request())
    await service.skip(ticket.id)

    again = await service.enqueue("B1", make_request())

    assert again.ticket_number == "LEK-002"
    assert (await service.get_ticket(ticket.id)).status == TicketStatus.SKIPPED


async def test_recent_activity(service, clock, make_request):
    ada = await service.enqueue("B1", make_request(name="Ada Obi"))
    clock.advance(minutes=5)
    await service.enqueue("B1", make_request(name="Bayo Ade"))
    await service.serve(ada.id)
    clock.advance(minutes=30)
    await service.complete(ada.id)

    activity = await service.recent_activity("B1")

    assert [(a.full_name, a.action, a.minutes_ago) for a in activity] == [
        ("Ada Obi", "Served", 1),
        ("Bayo Ade", "Joined queue", 30),
    ]


async def test_dashboard_compares_with_yesterday(service, clock, make_request):
    clock.current = T0 - timedelta(days=1)
    y1 = await service.enqueue("B1", make_request())
    await service.enqueue("B1", make_request())
    clock.advance(minutes=5)
    await service.serve(y1.id)
    await service.complete(y1.id)

    clock.current = T0
    t1 = await service.enqueue("B1", make_request())
    await service.enqueue("B1", make_request())
    clock.advance(minutes=10)
    await service.serve(t1.id)
    await service.complete(t1.id)

    dashboard = await service.dashboard("B1")

    assert (dashboard.active_in_queue.current, dashboard.active_in_queue.percentage_change) == (2, 100)
    assert (dashboard.average_wait_time.current, dashboard.average_wait_time.percentage_change) == (10, 100)
    assert (dashboard.served_today.current, dashboard.served_today.percentage_change) == (1, 0)


async def test_metrics_report_for_today(service, clock, make_request):
    served = await service.enqueue("B1", make_request(service_needed="cardCollection"))
    await service.enqueue("B1", make_request(service_needed="fundTransfer"))
    canceled = await service.enqueue("B1", make_request(service_needed="cardCollection"))
    clock.advance(minutes=15)
    await service.serve(served.id)
    await service.cancel(canceled.id)
    clock.advance(minutes=5)
    await service.complete(served.id)

    report = await service.get_metrics("B1", MetricsWindow(kind=MetricsWindowKind.TODAY))

    assert report.total_tickets == 3
    assert report.completed_in_window == 1
    assert report.cancelled_or_no_show == 1
    assert report.average_service_minutes == 5.0
    # served 15, canceled 15, still waiting 20
    assert report.average_wait_minutes == 16.7
    assert report.peak_hours == {10: 3}
    assert report.top_services[0].service_type == "cardCollection"


async def test_metrics_counts_completions_of_earlier_arrivals(service, clock, make_request):
    ticket = await service.enqueue("B1", make_request())
    clock.advance(days=1)
    await service.serve(ticket.id)
    await service.complete(ticket.id)

    report = await service.get_metrics("B1", MetricsWindow(kind=MetricsWindowKind.TODAY))

    assert report.total_tickets == 0
    assert report.completed_in_window == 1


async def test_guarded_timeout_is_a_dependency_error():
    with pytest.raises(DependencyError) as exc:
        await guarded(asyncio.sleep(1), "slow store", timeout=0.01)
    assert "timed out" in exc.value.detail


async def test_guarded_lets_queue_errors_through():
    async def missing():
        raise NotFound("Ticket 'x' not found")

    with pytest.raises(NotFound):
        await guarded(missing(), "ticket lookup")


async def test_mongo_document_round_trip(service, tickets, clock, make_request):
    ticket = await service.enqueue("B1", make_request())
    clock.advance(minutes=3)
    served = await service.serve(ticket.id)

    doc = _ticket_doc(served)

    assert isinstance(doc["_id"], ObjectId)
    assert doc["status"] == "in_service"
    assert doc["served_at"] == served.served_at
    assert doc["last_activity_at"] == served.served_at
    assert "wait_minutes" not in doc
    assert _ticket_from_doc(doc) == await tickets.get(ticket.id)


async def test_waiting_ticket_reports_wait_so_far(service, clock, make_request):
    ticket = await service.enqueue("B1", make_request())
    assert ticket.wait_minutes == 0.0
    clock.advance(minutes=12)

    read = await service.get_ticket(ticket.id)

    assert read.status == TicketStatus.WAITING
    assert read.wait_minutes == 12.0
    assert (await service.next_in_line("B1")).wait_minutes == 12.0


async def test_wait_stops_growing_once_served(service, clock, make_request):
    ticket = await service.enqueue("B1", make_request())
    clock.advance(minutes=7)
    served = await service.serve(ticket.id)
    clock.advance(minutes=30)

    assert served.wait_minutes == 7.0
    assert (await service.get_ticket(ticket.id)).wait_minutes == 7.0


async def test_active_queue_lists_unfinished_tickets_oldest_first(service, clock, make_request):
    first = await service.enqueue("B1", make_request(name="First"))
    clock.advance(minutes=2)
    second = await service.enqueue("B1", make_request(name="Second"))
    clock.advance(minutes=2)
    gone = await service.enqueue("B1", make_request(name="Gone"))
    skipped = await service.enqueue("B1", make_request(name="Skipped"))
    await service.serve(second.id)
    await service.cancel(gone.id)
    await service.skip(skipped.id)
    clock.advance(minutes=6)

    active = await service.active_queue("B1")

    assert [t.id for t in active] == [first.id, second.id]
    assert [t.status for t in active] == [TicketStatus.WAITING, TicketStatus.IN_SERVICE]
    assert [t.wait_minutes for t in active] == [10.0, 2.0]


async def test_queue_history_covers_every_ticket_of_the_day(service, clock, make_request):
    earlier = await service.enqueue("B1", make_request())
    clock.advance(days=1)
    served = await service.enqueue("B1", make_request())
    no_show = await service.enqueue("B1", make_request())
    await service.enqueue("B1", make_request())
    clock.advance(minutes=10)
    await service.serve(earlier.id)
    await service.complete(earlier.id)
    await service.serve(served.id)
    clock.advance(minutes=5)
    await service.complete(served.id)
    await service.mark_no_show(no_show.id)

    history = await service.queue_history("B1")

    assert [t.ticket_number for t in history.tickets] == ["LEK-001", "LEK-002", "LEK-003"]
    assert [t.status for t in history.tickets] == [
        TicketStatus.COMPLETED,
        TicketStatus.NO_SHOW,
        TicketStatus.WAITING,
    ]
    assert history.tickets[0].service_minutes == 5.0
    # earlier arrivals completed today still count
    assert history.completed_in_window == 2
    assert history.cancelled_or_no_show == 1
    # served 10, no-show 15, waiting 15
    assert history.average_wait_minutes == 13.3


async def test_queue_history_custom_window(service, clock, make_request):
    await service.enqueue("B1", make_request())
    window = MetricsWindow(
        kind=MetricsWindowKind.CUSTOM, start=T0 + timedelta(minutes=1), end=T0 + timedelta(hours=1)
    )

    history = await service.queue_history("B1", window)

    assert history.tickets == []
    assert history.average_wait_minutes == 0.0
