"""
Alert eligibility and hand-off to the notifier.
"""

import logging
from datetime import datetime
from typing import Optional

from ..errors import DependencyError, InvalidTransition, NotAlertable, guarded
from ..models.ticket import AlertResult, Ticket, TicketStatus, Trigger
from ..stores.base import BusinessDirectory, Notifier, TicketStore
from .state_machine import TicketStateMachine

logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_NAME = "Your Service Point"

ALERTABLE_STATUSES = frozenset({TicketStatus.WAITING, TicketStatus.ALERTED})


class AlertDispatcher:
    """Decides when a ticket may be alerted and triggers the notification.

    A first alert on a waiting ticket promotes it to ``in_service`` (or to
    ``alerted`` when auto-serve is off). A failed delivery is reported in the
    result and never rolls the status change back.
    """

    def __init__(
        self,
        state_machine: TicketStateMachine,
        tickets: TicketStore,
        directory: BusinessDirectory,
        notifier: Notifier,
        auto_serve: bool = True,
    ):
        self.state_machine = state_machine
        self.tickets = tickets
        self.directory = directory
        self.notifier = notifier
        self.auto_serve = auto_serve

    @staticmethod
    def should_alert(ticket: Ticket) -> bool:
        return ticket.status in ALERTABLE_STATUSES

    @classmethod
    def ensure_alertable(cls, ticket: Ticket) -> None:
        if not cls.should_alert(ticket):
            raise NotAlertable(ticket.status.value)

    async def alert(self, ticket_id: str, now: datetime) -> AlertResult:
        ticket = await guarded(self.tickets.get(ticket_id), "ticket lookup")
        self.ensure_alertable(ticket)

        if ticket.status == TicketStatus.WAITING:
            trigger = Trigger.SERVE if self.auto_serve else Trigger.ALERT
            try:
                ticket = await self.state_machine.apply(ticket_id, trigger, now)
            except InvalidTransition as e:
                # Another operator moved the ticket first
                raise NotAlertable(e.current) from e

        error = await self._notify(ticket)
        if error is not None:
            return AlertResult(ticket=ticket, notified=False, notification_error=error.detail)
        return AlertResult(ticket=ticket, notified=True)

    async def _notify(self, ticket: Ticket) -> Optional[DependencyError]:
        business_name = await self._business_name(ticket.business_id)
        try:
            await guarded(self.notifier.send(ticket, business_name), "alert notification")
        except DependencyError as e:
            return e
        except Exception as e:
            return DependencyError(f"alert notification failed: {e}", e)
        return None

    async def _business_name(self, business_id: str) -> str:
        try:
            business = await guarded(self.directory.resolve(business_id), "business lookup")
        except DependencyError:
            # The status change is already committed; a generic name still lets the alert go out
            return DEFAULT_BUSINESS_NAME
        return business.name or DEFAULT_BUSINESS_NAME
