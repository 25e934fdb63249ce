"""
Wait-time, service-time and volume statistics over ticket snapshots.

Everything here is a pure function of its arguments: no I/O, no clock reads,
and results do not depend on the order of the input tickets.
"""

import math
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple
from zoneinfo import ZoneInfo

from ..errors import IntegrityViolation
from ..models.metrics import (
    MetricsReport,
    MetricsWindow,
    MetricsWindowKind,
    ServiceCount,
    WeekdayCount,
    WeekdayValue,
    WEEKDAY_NAMES,
)
from ..models.ticket import Ticket, TicketStatus
from .clock import as_utc, day_bounds, local_date, weekday_index


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def canonical_order(tickets: Iterable[Ticket]) -> List[Ticket]:
    """Tickets sorted by arrival, independent of how they were fetched."""
    return sorted(tickets, key=lambda t: (as_utc(t.joined_at), t.ticket_number, t.id))


def resolve_window(window: MetricsWindow, now: datetime, zone: ZoneInfo) -> Tuple[datetime, datetime]:
    """UTC ``[start, end)`` for a named or custom window."""
    today = local_date(now, zone)
    if window.kind == MetricsWindowKind.TODAY:
        return day_bounds(today, zone)
    if window.kind == MetricsWindowKind.LAST_7_DAYS:
        start, _ = day_bounds(today - timedelta(days=6), zone)
        _, end = day_bounds(today, zone)
        return start, end
    return as_utc(window.start), as_utc(window.end)


def average_wait_time(tickets: Sequence[Ticket], now: datetime) -> float:
    """Mean wait in minutes, one decimal; 0 for no tickets."""
    if not tickets:
        return 0.0
    total = sum(t.wait_time(now).total_seconds() for t in tickets)
    return round_half_up(total / len(tickets) / 60, 1)


def average_service_time(tickets: Sequence[Ticket]) -> float:
    """Mean service time in minutes over tickets that have one."""
    durations = []
    for ticket in tickets:
        elapsed = ticket.service_time()
        if elapsed is None:
            continue
        if elapsed < timedelta(0):
            raise IntegrityViolation(
                f"Ticket {ticket.ticket_number} completed before its service started"
            )
        durations.append(elapsed.total_seconds())
    if not durations:
        return 0.0
    return round_half_up(sum(durations) / len(durations) / 60, 1)


def completed_in_window(tickets: Iterable[Ticket], start: datetime, end: datetime) -> int:
    start, end = as_utc(start), as_utc(end)
    return sum(
        1
        for t in tickets
        if t.status == TicketStatus.COMPLETED
        and t.completed_at is not None
        and start <= as_utc(t.completed_at) < end
    )


def cancelled_or_no_show(tickets: Iterable[Ticket]) -> int:
    return sum(1 for t in tickets if t.status in (TicketStatus.CANCELED, TicketStatus.NO_SHOW))


def _days_ending(reference_date: date) -> set:
    return {reference_date - timedelta(days=offset) for offset in range(7)}


def weekly_volume(tickets: Iterable[Ticket], reference_date: date, zone: ZoneInfo) -> List[int]:
    """Arrivals per weekday (Sun=0..Sat=6) for the 7 days ending on ``reference_date``."""
    days = _days_ending(reference_date)
    counts = [0] * 7
    for ticket in tickets:
        day = local_date(ticket.joined_at, zone)
        if day in days:
            counts[weekday_index(day)] += 1
    return counts


def wait_time_trend(
    tickets: Iterable[Ticket], reference_date: date, zone: ZoneInfo, now: datetime
) -> List[float]:
    """Average wait per weekday (Sun=0..Sat=6) over the same 7-day window."""
    days = _days_ending(reference_date)
    buckets: List[List[Ticket]] = [[] for _ in range(7)]
    for ticket in tickets:
        day = local_date(ticket.joined_at, zone)
        if day in days:
            buckets[weekday_index(day)].append(ticket)
    return [average_wait_time(bucket, now) for bucket in buckets]


def peak_hours(tickets: Iterable[Ticket], zone: ZoneInfo) -> Dict[int, int]:
    """Arrivals per local hour; only hours with arrivals appear."""
    counts: Dict[int, int] = {}
    for ticket in tickets:
        hour = as_utc(ticket.joined_at).astimezone(zone).hour
        counts[hour] = counts.get(hour, 0) + 1
    return dict(sorted(counts.items()))


def service_distribution(tickets: Iterable[Ticket]) -> List[ServiceCount]:
    """Tickets per declared service, in order of first arrival."""
    buckets: "OrderedDict[str, int]" = OrderedDict()
    for ticket in canonical_order(tickets):
        service = ticket.form_details.service_needed
        if service is None:
            continue
        buckets[service.value] = buckets.get(service.value, 0) + 1
    return [ServiceCount(service_type=name, count=count) for name, count in buckets.items()]


def top_services(distribution: List[ServiceCount], limit: int) -> List[ServiceCount]:
    # sorted() is stable, so equal counts keep first-seen order
    return sorted(distribution, key=lambda s: -s.count)[:limit]


def completion_rate(tickets: Sequence[Ticket]) -> float:
    if not tickets:
        return 0.0
    completed = sum(1 for t in tickets if t.status == TicketStatus.COMPLETED)
    return round_half_up(completed / len(tickets) * 100, 1)


def percentage_change(current: float, previous: float) -> int:
    if not previous:
        return 0
    return int(round_half_up((current - previous) / previous * 100))


def build_report(
    business_id: str,
    window: MetricsWindowKind,
    tickets: Sequence[Ticket],
    completed: Sequence[Ticket],
    start: datetime,
    end: datetime,
    zone: ZoneInfo,
    now: datetime,
    top_limit: int = 5,
) -> MetricsReport:
    """Assemble the analytics report for one window.

    ``tickets`` are the arrivals in the window; ``completed`` are tickets
    whose completion falls in it, which may have joined earlier.
    """
    reference_date = local_date(as_utc(end) - timedelta(microseconds=1), zone)
    distribution = service_distribution(tickets)

    return MetricsReport(
        business_id=business_id,
        window=window,
        start=start,
        end=end,
        generated_at=now,
        total_tickets=len(tickets),
        average_wait_minutes=average_wait_time(tickets, now),
        average_service_minutes=average_service_time(tickets),
        completed_in_window=completed_in_window(completed, start, end),
        cancelled_or_no_show=cancelled_or_no_show(tickets),
        completion_rate=completion_rate(tickets),
        weekly_volume=[
            WeekdayCount(day=WEEKDAY_NAMES[i], count=count)
            for i, count in enumerate(weekly_volume(tickets, reference_date, zone))
        ],
        wait_time_trend=[
            WeekdayValue(day=WEEKDAY_NAMES[i], value=value)
            for i, value in enumerate(wait_time_trend(tickets, reference_date, zone, now))
        ],
        peak_hours=peak_hours(tickets, zone),
        service_distribution=distribution,
        top_services=top_services(distribution, top_limit),
    )
