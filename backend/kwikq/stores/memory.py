"""
In-process implementations of the store interfaces.

Each store guards its state with asyncio locks so the same linearizability
guarantees hold as with the Mongo-backed stores, within one event loop.
"""

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Union

from bson import ObjectId

from ..errors import NotFound
from ..models.business import Branch, Organization, QueuePoint, parse_business
from ..models.ticket import Ticket, TicketStatus


class InMemoryBusinessDirectory:
    """Business directory backed by dictionaries."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._businesses: Dict[str, Union[Organization, Branch]] = {}
        self._queue_points: Dict[str, QueuePoint] = {}

    def add(self, business: Union[Organization, Branch, dict]) -> Union[Organization, Branch]:
        if isinstance(business, dict):
            business = parse_business(business)
        self._businesses[business.id] = business
        return business

    async def exists(self, business_id: str) -> bool:
        return business_id in self._businesses

    async def resolve(self, business_id: str) -> Union[Organization, Branch]:
        business = self._businesses.get(business_id)
        if business is None:
            raise NotFound(f"Business '{business_id}' not found")
        return business

    async def timezone_of(self, business_id: str) -> Optional[str]:
        return (await self.resolve(business_id)).timezone

    async def branch_code_of(self, business_id: str) -> Optional[str]:
        return (await self.resolve(business_id)).code

    async def queue_points(self, business_id: str) -> List[QueuePoint]:
        points = [p for p in self._queue_points.values() if p.business_id == business_id]
        return [p.model_copy(deep=True) for p in sorted(points, key=lambda p: (p.created_at, p.id))]

    async def ensure_queue_point(self, business_id: str, name: str) -> QueuePoint:
        async with self._lock:
            for point in self._queue_points.values():
                if point.business_id == business_id and point.name == name:
                    return point.model_copy(deep=True)
            point = QueuePoint(
                _id=str(ObjectId()),
                business_id=business_id,
                name=name,
                created_at=datetime.now(timezone.utc),
            )
            self._queue_points[point.id] = point
            return point.model_copy(deep=True)

    async def attach_ticket(self, queue_point_id: str, ticket_id: str, sequence: int) -> None:
        async with self._lock:
            point = self._queue_points.get(queue_point_id)
            if point is None:
                raise NotFound(f"Queue point '{queue_point_id}' not found")
            point.ticket_ids.append(ticket_id)
            point.last_sequence = max(point.last_sequence, sequence)


class InMemoryTicketStore:
    """Ticket store backed by a dictionary of immutable snapshots."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._tickets: Dict[str, Ticket] = {}

    async def create(self, ticket: Ticket) -> None:
        async with self._lock:
            if ticket.id in self._tickets:
                raise ValueError(f"Duplicate ticket id '{ticket.id}'")
            self._tickets[ticket.id] = ticket.model_copy(deep=True)

    async def get(self, ticket_id: str) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise NotFound(f"Ticket '{ticket_id}' not found")
        return ticket.model_copy(deep=True)

    async def compare_and_swap_status(
        self, ticket_id: str, expected_status: TicketStatus, new_ticket: Ticket
    ) -> bool:
        async with self._lock:
            current = self._tickets.get(ticket_id)
            if current is None:
                raise NotFound(f"Ticket '{ticket_id}' not found")
            if current.status != expected_status:
                return False
            self._tickets[ticket_id] = new_ticket.model_copy(deep=True)
            return True

    async def query_by_business_and_window(
        self,
        business_id: str,
        start: datetime,
        end: datetime,
        field: str = "joined_at",
    ) -> List[Ticket]:
        result = []
        for ticket in self._tickets.values():
            value = getattr(ticket, field)
            if ticket.business_id == business_id and value is not None and start <= value < end:
                result.append(ticket.model_copy(deep=True))
        return result

    async def query_by_status(
        self, business_id: str, statuses: Iterable[TicketStatus]
    ) -> List[Ticket]:
        wanted = set(statuses)
        return [
            t.model_copy(deep=True)
            for t in self._tickets.values()
            if t.business_id == business_id and t.status in wanted
        ]

    async def recent(self, business_id: str, limit: int) -> List[Ticket]:
        tickets = [t for t in self._tickets.values() if t.business_id == business_id]
        tickets.sort(key=lambda t: t.last_activity_at, reverse=True)
        return [t.model_copy(deep=True) for t in tickets[:limit]]


class InMemorySequenceStore:
    """Per-key counters, each mutated under its own lock."""

    def __init__(self) -> None:
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)
        self._counters: Dict[Tuple[str, str], int] = defaultdict(int)

    async def atomic_increment(self, business_id: str, day_key: str) -> int:
        key = (business_id, day_key)
        async with self._locks[key]:
            self._counters[key] += 1
            return self._counters[key]
