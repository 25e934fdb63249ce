"""
Queue orchestration service.

This is the one entry point the HTTP layer calls. It checks that the business
exists, then delegates to the allocator, the state machine, the alert
dispatcher or the metrics functions. No lifecycle rule lives here.
"""

import logging
import math
from datetime import timedelta
from typing import List, Optional

from bson import ObjectId

from ..config import Settings, get_settings
from ..errors import NotFound, guarded
from ..models.business import QueuePoint
from ..models.metrics import (
    ActivityEntry,
    DashboardMetrics,
    DashboardStat,
    MetricsReport,
    MetricsWindow,
    MetricsWindowKind,
    QueueHistory,
    QueueOverview,
    QueuePointSummary,
)
from ..models.ticket import (
    ACTIVE_STATUSES,
    AlertResult,
    Ticket,
    TicketCreate,
    TicketStatus,
    Trigger,
)
from ..stores.base import BusinessDirectory, Notifier, SequenceStore, TicketStore
from . import metrics_aggregator as metrics
from .alert_dispatcher import AlertDispatcher
from .clock import SystemClock, TimeSource, day_bounds, local_date, resolve_zone
from .sequence_allocator import SequenceAllocator
from .state_machine import TicketStateMachine

logger = logging.getLogger(__name__)

ACTIVITY_LABELS = {
    TicketStatus.WAITING: "Joined queue",
    TicketStatus.ALERTED: "Alert sent",
    TicketStatus.IN_SERVICE: "Being served",
    TicketStatus.COMPLETED: "Served",
    TicketStatus.CANCELED: "Canceled",
    TicketStatus.NO_SHOW: "No show",
    TicketStatus.SKIPPED: "Skipped",
}


class QueueService:
    """Queue ticket lifecycle and metrics service."""

    def __init__(
        self,
        directory: BusinessDirectory,
        tickets: TicketStore,
        sequences: SequenceStore,
        notifier: Notifier,
        clock: Optional[TimeSource] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.directory = directory
        self.tickets = tickets
        self.clock = clock or SystemClock()
        self.allocator = SequenceAllocator(directory, sequences)
        self.state_machine = TicketStateMachine(tickets)
        self.alerts = AlertDispatcher(
            self.state_machine,
            tickets,
            directory,
            notifier,
            auto_serve=self.settings.ALERT_AUTO_SERVE,
        )

    # -------------------- lifecycle --------------------

    async def enqueue(self, business_id: str, request: TicketCreate) -> Ticket:
        """Issue a ticket and place it on a queue point."""
        await self._require_business(business_id)
        points = await self._queue_points(business_id)

        # Resolve an explicit queue point before a number is spent on it
        point: Optional[QueuePoint] = None
        if request.queue_point_id:
            point = next((p for p in points if p.id == request.queue_point_id), None)
            if point is None:
                raise NotFound(f"Queue point '{request.queue_point_id}' not found")

        if point is None and not points:
            raise NotFound(f"Business '{business_id}' has no queue points")

        now = self.clock.now()
        allocation = await self.allocator.allocate(business_id, now)
        if point is None:
            point = points[(allocation.sequence - 1) % len(points)]

        form = request.form_details
        ticket = Ticket(
            _id=str(ObjectId()),
            business_id=business_id,
            queue_point_id=point.id,
            queue_point_name=point.name,
            ticket_number=allocation.ticket_number,
            sequence=allocation.sequence,
            service_day=allocation.service_day,
            status=TicketStatus.WAITING,
            priority=form.priority,
            form_details=form,
            joined_at=now,
        )

        await guarded(self.tickets.create(ticket), "ticket create")
        await guarded(
            self.directory.attach_ticket(point.id, ticket.id, allocation.sequence),
            "queue point update",
        )

        logger.info(
            "Ticket enqueued",
            extra={
                "business_id": business_id,
                "ticket_id": ticket.id,
                "ticket_number": ticket.ticket_number,
                "queue_point": point.name,
            },
        )
        return ticket.observed_at(now)

    async def serve(self, ticket_id: str) -> Ticket:
        return await self._apply(ticket_id, Trigger.SERVE)

    async def complete(self, ticket_id: str) -> Ticket:
        return await self._apply(ticket_id, Trigger.COMPLETE)

    async def cancel(self, ticket_id: str) -> Ticket:
        return await self._apply(ticket_id, Trigger.CANCEL)

    async def skip(self, ticket_id: str) -> Ticket:
        return await self._apply(ticket_id, Trigger.SKIP)

    async def mark_no_show(self, ticket_id: str) -> Ticket:
        return await self._apply(ticket_id, Trigger.NO_SHOW)

    async def alert(self, ticket_id: str) -> AlertResult:
        """Alert a customer that it is their turn."""
        ticket = await self.get_ticket(ticket_id)
        await self._require_business(ticket.business_id)

        now = self.clock.now()
        result = await self.alerts.alert(ticket_id, now)
        if not result.notified:
            # The transition stands; delivery failure is only reported
            logger.warning(
                "Alert notification failed",
                extra={
                    "ticket_id": ticket_id,
                    "ticket_number": result.ticket.ticket_number,
                    "error": result.notification_error,
                },
            )
        return result.model_copy(update={"ticket": result.ticket.observed_at(now)})

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await guarded(self.tickets.get(ticket_id), "ticket lookup")
        return ticket.observed_at(self.clock.now())

    async def _apply(self, ticket_id: str, trigger: Trigger) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        await self._require_business(ticket.business_id)
        now = self.clock.now()
        updated = await self.state_machine.apply(ticket_id, trigger, now)
        return updated.observed_at(now)

    # -------------------- queue views --------------------

    async def next_in_line(
        self, business_id: str, queue_point_id: Optional[str] = None
    ) -> Optional[Ticket]:
        """Waiting ticket with the highest priority, then earliest arrival."""
        await self._require_business(business_id)
        waiting = await guarded(
            self.tickets.query_by_status(business_id, [TicketStatus.WAITING]),
            "ticket query",
        )
        if queue_point_id:
            waiting = [t for t in waiting if t.queue_point_id == queue_point_id]
        if not waiting:
            return None
        chosen = min(waiting, key=lambda t: (-t.priority, t.joined_at, t.ticket_number))
        return chosen.observed_at(self.clock.now())

    async def queue_overview(self, business_id: str) -> QueueOverview:
        """Ticket and waiting counts per queue point."""
        await self._require_business(business_id)
        points = await guarded(self.directory.queue_points(business_id), "queue point lookup")
        waiting = await guarded(
            self.tickets.query_by_status(business_id, [TicketStatus.WAITING]),
            "ticket query",
        )

        summaries = []
        for point in points:
            summaries.append(QueuePointSummary(
                id=point.id,
                name=point.name,
                total_tickets=len(point.ticket_ids),
                waiting_count=sum(1 for t in waiting if t.queue_point_id == point.id),
            ))

        return QueueOverview(
            business_id=business_id,
            total_waiting=sum(s.waiting_count for s in summaries),
            queue_points=summaries,
        )

    async def active_queue(self, business_id: str) -> List[Ticket]:
        """Tickets still waiting, alerted or in service, oldest arrival first."""
        await self._require_business(business_id)
        active = await guarded(
            self.tickets.query_by_status(business_id, ACTIVE_STATUSES), "ticket query"
        )
        now = self.clock.now()
        return [t.observed_at(now) for t in metrics.canonical_order(active)]

    async def queue_history(
        self, business_id: str, window: Optional[MetricsWindow] = None
    ) -> QueueHistory:
        """Every ticket that joined in the window (today by default), any status."""
        business = await self._require_business(business_id)
        window = window or MetricsWindow(kind=MetricsWindowKind.TODAY)
        zone = resolve_zone(business.timezone)
        now = self.clock.now()
        start, end = metrics.resolve_window(window, now, zone)

        joined = await guarded(
            self.tickets.query_by_business_and_window(business_id, start, end),
            "ticket query",
        )
        completed = await guarded(
            self.tickets.query_by_business_and_window(business_id, start, end, field="completed_at"),
            "ticket query",
        )

        return QueueHistory(
            business_id=business_id,
            start=start,
            end=end,
            tickets=[t.observed_at(now) for t in metrics.canonical_order(joined)],
            completed_in_window=metrics.completed_in_window(completed, start, end),
            average_wait_minutes=metrics.average_wait_time(joined, now),
            cancelled_or_no_show=metrics.cancelled_or_no_show(joined),
        )

    async def recent_activity(self, business_id: str) -> List[ActivityEntry]:
        await self._require_business(business_id)
        recent = await guarded(
            self.tickets.recent(business_id, self.settings.RECENT_ACTIVITY_LIMIT),
            "ticket query",
        )
        now = self.clock.now()

        return [
            ActivityEntry(
                full_name=t.form_details.full_name,
                ticket_number=t.ticket_number,
                action=ACTIVITY_LABELS[t.status],
                minutes_ago=max(round((now - t.last_activity_at).total_seconds() / 60), 1),
            )
            for t in recent
        ]

    # -------------------- metrics --------------------

    async def get_metrics(
        self, business_id: str, window: Optional[MetricsWindow] = None
    ) -> MetricsReport:
        """Analytics report for a window (last 7 local days by default)."""
        business = await self._require_business(business_id)
        window = window or MetricsWindow()
        zone = resolve_zone(business.timezone)
        now = self.clock.now()
        start, end = metrics.resolve_window(window, now, zone)

        joined = await guarded(
            self.tickets.query_by_business_and_window(business_id, start, end),
            "ticket query",
        )
        completed = await guarded(
            self.tickets.query_by_business_and_window(business_id, start, end, field="completed_at"),
            "ticket query",
        )

        return metrics.build_report(
            business_id,
            window.kind,
            joined,
            completed,
            start,
            end,
            zone,
            now,
            top_limit=self.settings.TOP_SERVICES_LIMIT,
        )

    async def dashboard(self, business_id: str) -> DashboardMetrics:
        """Today's headline numbers with their change against yesterday."""
        business = await self._require_business(business_id)
        zone = resolve_zone(business.timezone)
        now = self.clock.now()
        today = local_date(now, zone)
        today_start, today_end = day_bounds(today, zone)
        yesterday_start, _ = day_bounds(today - timedelta(days=1), zone)

        active = await guarded(
            self.tickets.query_by_status(business_id, ACTIVE_STATUSES), "ticket query"
        )
        active_yesterday = [t for t in active if yesterday_start <= t.joined_at < today_start]

        completed = await guarded(
            self.tickets.query_by_business_and_window(
                business_id, yesterday_start, today_end, field="completed_at"
            ),
            "ticket query",
        )
        completed = [t for t in completed if t.status == TicketStatus.COMPLETED]
        served_today = [t for t in completed if t.completed_at >= today_start]
        served_yesterday = [t for t in completed if t.completed_at < today_start]

        wait_today = metrics.average_wait_time(served_today, now)
        wait_yesterday = metrics.average_wait_time(served_yesterday, now)

        return DashboardMetrics(
            business_id=business_id,
            active_in_queue=DashboardStat(
                current=len(active),
                percentage_change=metrics.percentage_change(len(active), len(active_yesterday)),
            ),
            average_wait_time=DashboardStat(
                current=math.floor(wait_today + 0.5),
                percentage_change=metrics.percentage_change(wait_today, wait_yesterday),
            ),
            served_today=DashboardStat(
                current=len(served_today),
                percentage_change=metrics.percentage_change(len(served_today), len(served_yesterday)),
            ),
        )

    # -------------------- helpers --------------------

    async def _require_business(self, business_id: str):
        return await guarded(self.directory.resolve(business_id), "business lookup")

    async def _queue_points(self, business_id: str) -> List[QueuePoint]:
        """Queue points of a business, provisioning the defaults it is missing."""
        points = await guarded(self.directory.queue_points(business_id), "queue point lookup")
        missing = self.settings.QUEUE_POINTS_PER_BUSINESS - len(points)
        if missing <= 0:
            return points

        for i in range(1, missing + 1):
            await guarded(
                self.directory.ensure_queue_point(business_id, f"Queue {len(points) + i}"),
                "queue point provisioning",
            )
        return await guarded(self.directory.queue_points(business_id), "queue point lookup")
