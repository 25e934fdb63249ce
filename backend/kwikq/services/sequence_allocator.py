"""
Ticket number allocation.

Sequences are counted per (business, local calendar day) and minted by a
single atomic increment in the sequence store, so two concurrent arrivals
can never read the same "last" number.
"""

import logging
from datetime import date, datetime
from typing import NamedTuple

from ..config import get_settings
from ..errors import AllocationError, DependencyError, NotFound, guarded
from ..stores.base import BusinessDirectory, SequenceStore
from .clock import local_date, resolve_zone

logger = logging.getLogger(__name__)


class Allocation(NamedTuple):
    sequence: int
    service_day: str
    ticket_number: str


def format_ticket_number(code: str, sequence: int, width: int = 3) -> str:
    """``LAG-007``; wider sequences are rendered in full, never wrapped."""
    return f"{code}-{sequence:0{width}d}"


class SequenceAllocator:
    """Issues strictly increasing ticket sequences per business and day."""

    def __init__(self, directory: BusinessDirectory, sequences: SequenceStore):
        self.directory = directory
        self.sequences = sequences

    async def next(self, business_id: str, day: date) -> int:
        """Smallest sequence not yet issued for ``business_id`` on ``day``."""
        try:
            known = await guarded(self.directory.exists(business_id), "business lookup")
        except DependencyError as e:
            raise AllocationError(f"Could not verify business '{business_id}': {e.detail}") from e
        if not known:
            raise AllocationError(f"Unknown business '{business_id}'")
        return await self._increment(business_id, day)

    async def allocate(self, business_id: str, now: datetime) -> Allocation:
        """Next sequence for the business's current local day, formatted."""
        settings = get_settings()
        try:
            business = await guarded(self.directory.resolve(business_id), "business lookup")
        except NotFound as e:
            raise AllocationError(f"Unknown business '{business_id}'") from e
        except DependencyError as e:
            raise AllocationError(f"Could not resolve business '{business_id}': {e.detail}") from e

        day = local_date(now, resolve_zone(business.timezone))
        sequence = await self._increment(business_id, day)
        number = format_ticket_number(
            business.code or settings.DEFAULT_TICKET_PREFIX,
            sequence,
            settings.TICKET_SEQUENCE_WIDTH,
        )
        return Allocation(sequence, day.isoformat(), number)

    async def _increment(self, business_id: str, day: date) -> int:
        try:
            sequence = await guarded(
                self.sequences.atomic_increment(business_id, day.isoformat()),
                "sequence increment",
            )
        except DependencyError as e:
            logger.error(
                "Sequence allocation failed",
                extra={"business_id": business_id, "day": day.isoformat(), "error": e.detail},
            )
            raise AllocationError(f"Could not allocate a ticket number: {e.detail}") from e
        if sequence < 1:
            raise AllocationError(f"Sequence store returned invalid value {sequence}")
        return sequence
