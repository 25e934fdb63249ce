"""
Ticket lifecycle.

The transition table below is the single authority on which operator action
may move a ticket from one status to another. Timestamps are stamped here and
nowhere else; durations are derived from them by the ticket model.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..errors import DependencyError, IntegrityViolation, InvalidTransition, guarded
from ..models.ticket import Ticket, TicketStatus, Trigger, TERMINAL_STATUSES
from ..stores.base import TicketStore
from .clock import as_utc

logger = logging.getLogger(__name__)

S = TicketStatus

TRANSITIONS = {
    (S.WAITING, Trigger.ALERT): S.ALERTED,
    (S.WAITING, Trigger.SERVE): S.IN_SERVICE,
    (S.ALERTED, Trigger.SERVE): S.IN_SERVICE,
    (S.IN_SERVICE, Trigger.COMPLETE): S.COMPLETED,
    (S.WAITING, Trigger.NO_SHOW): S.NO_SHOW,
    (S.ALERTED, Trigger.NO_SHOW): S.NO_SHOW,
    (S.WAITING, Trigger.CANCEL): S.CANCELED,
    (S.ALERTED, Trigger.CANCEL): S.CANCELED,
    (S.IN_SERVICE, Trigger.CANCEL): S.CANCELED,
    (S.WAITING, Trigger.SKIP): S.SKIPPED,
    (S.ALERTED, Trigger.SKIP): S.SKIPPED,
}

# Re-applying these to a ticket already in the target state succeeds unchanged
IDEMPOTENT = {
    (S.ALERTED, Trigger.ALERT),
    (S.SKIPPED, Trigger.SKIP),
}


def transition(ticket: Ticket, trigger: Trigger, now: datetime) -> Ticket:
    """Return the ticket after ``trigger``, or raise without touching it."""
    now = as_utc(now)
    key = (ticket.status, trigger)

    if key in IDEMPOTENT:
        return ticket

    target = TRANSITIONS.get(key)
    if target is None:
        raise InvalidTransition(ticket.status.value, trigger.value)

    updates = {"status": target}

    if target == S.IN_SERVICE:
        if now < ticket.joined_at:
            raise IntegrityViolation(
                f"Ticket {ticket.ticket_number} cannot be served before it joined"
            )
        updates["served_at"] = now

    if target in TERMINAL_STATUSES:
        if target == S.COMPLETED and ticket.served_at is None:
            raise IntegrityViolation(
                f"Ticket {ticket.ticket_number} is in service without a service start"
            )
        floor = ticket.served_at or ticket.joined_at
        if now < floor:
            raise IntegrityViolation(
                f"Ticket {ticket.ticket_number} cannot finish before "
                f"{'service started' if ticket.served_at else 'it joined'}"
            )
        updates["completed_at"] = now

    return ticket.model_copy(update=updates)


class TicketStateMachine:
    """Applies lifecycle triggers to stored tickets."""

    def __init__(self, tickets: TicketStore, timeout: Optional[float] = None):
        self.tickets = tickets
        self.timeout = timeout

    async def apply(self, ticket_id: str, trigger: Trigger, now: datetime) -> Ticket:
        """Validate and persist one transition.

        The write is a compare-and-swap on the status read here, so of two
        concurrent triggers on the same ticket at most one commits. A swap
        that outlives its timeout still runs to completion; the stored
        ticket is then re-read to report what actually happened.
        """
        ticket = await guarded(self.tickets.get(ticket_id), "ticket lookup", self.timeout)
        try:
            updated = transition(ticket, trigger, now)
        except (InvalidTransition, IntegrityViolation) as e:
            logger.info(
                "Transition rejected",
                extra={"ticket_id": ticket_id, "trigger": trigger.value, "reason": e.detail},
            )
            raise

        if updated is ticket:
            return ticket

        # Once issued, the swap completes even if the caller goes away
        swap = asyncio.ensure_future(
            self.tickets.compare_and_swap_status(ticket_id, ticket.status, updated)
        )
        try:
            swapped = await guarded(asyncio.shield(swap), "ticket update", self.timeout)
        except DependencyError as e:
            swapped = await self._settle(swap, ticket_id, updated, e)

        if not swapped:
            current = await guarded(self.tickets.get(ticket_id), "ticket lookup", self.timeout)
            raise InvalidTransition(
                current.status.value,
                trigger.value,
                f"Ticket {ticket.ticket_number} changed from '{ticket.status.value}' "
                f"to '{current.status.value}' concurrently; '{trigger.value}' not applied",
            )

        logger.info(
            "Transition applied",
            extra={
                "ticket_id": ticket_id,
                "ticket_number": ticket.ticket_number,
                "from": ticket.status.value,
                "to": updated.status.value,
            },
        )
        return updated

    async def _settle(
        self, swap: "asyncio.Future[bool]", ticket_id: str, updated: Ticket, error: DependencyError
    ) -> bool:
        """Outcome of a swap whose acknowledgement failed or timed out."""
        if swap.done() and not swap.cancelled() and swap.exception() is None:
            return swap.result()

        stored = await guarded(self.tickets.get(ticket_id), "ticket lookup", self.timeout)
        if stored == updated:
            logger.warning(
                "Transition committed after its acknowledgement failed",
                extra={"ticket_id": ticket_id, "to": updated.status.value, "error": error.detail},
            )
            return True

        # Still in flight or lost: the caller must re-read before retrying
        raise DependencyError(
            f"{error.detail}; ticket is '{stored.status.value}', outcome of "
            f"'{updated.status.value}' unknown until re-read",
            error.cause,
        ) from error
