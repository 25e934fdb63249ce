"""
Collaborator interfaces the queue core depends on.

Implementations live next to this module: ``memory`` for a single process
and tests, ``mongo`` for the Motor-backed deployment.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Union

from ..models.business import Branch, Organization, QueuePoint
from ..models.ticket import Ticket, TicketStatus


class BusinessDirectory(Protocol):
    async def exists(self, business_id: str) -> bool:
        ...

    async def resolve(self, business_id: str) -> Union[Organization, Branch]:
        """Tagged business record; raises NotFound."""
        ...

    async def timezone_of(self, business_id: str) -> Optional[str]:
        ...

    async def branch_code_of(self, business_id: str) -> Optional[str]:
        ...

    async def queue_points(self, business_id: str) -> List[QueuePoint]:
        """Queue points in creation order."""
        ...

    async def ensure_queue_point(self, business_id: str, name: str) -> QueuePoint:
        """Create the named queue point unless it already exists."""
        ...

    async def attach_ticket(self, queue_point_id: str, ticket_id: str, sequence: int) -> None:
        ...


class TicketStore(Protocol):
    async def create(self, ticket: Ticket) -> None:
        ...

    async def get(self, ticket_id: str) -> Ticket:
        """Stored ticket; raises NotFound."""
        ...

    async def compare_and_swap_status(
        self, ticket_id: str, expected_status: TicketStatus, new_ticket: Ticket
    ) -> bool:
        """Replace the ticket only if its stored status is still ``expected_status``."""
        ...

    async def query_by_business_and_window(
        self,
        business_id: str,
        start: datetime,
        end: datetime,
        field: str = "joined_at",
    ) -> List[Ticket]:
        """Tickets whose ``field`` lies in ``[start, end)``."""
        ...

    async def query_by_status(
        self, business_id: str, statuses: Iterable[TicketStatus]
    ) -> List[Ticket]:
        ...

    async def recent(self, business_id: str, limit: int) -> List[Ticket]:
        """Most recently touched tickets first."""
        ...


class SequenceStore(Protocol):
    async def atomic_increment(self, business_id: str, day_key: str) -> int:
        """Increment and return the counter for a (business, day) key in one step."""
        ...


class Notifier(Protocol):
    async def send(self, ticket: Ticket, business_name: str) -> None:
        ...
