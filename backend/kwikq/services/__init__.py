"""Services package for the KwikQ queue core."""

from .queue_service import QueueService
from .sequence_allocator import SequenceAllocator, format_ticket_number
from .state_machine import TicketStateMachine
from .alert_dispatcher import AlertDispatcher
from .notification_service import LoggingNotifier, SmtpNotifier, build_notifier

__all__ = [
    "QueueService",
    "SequenceAllocator",
    "format_ticket_number",
    "TicketStateMachine",
    "AlertDispatcher",
    "LoggingNotifier",
    "SmtpNotifier",
    "build_notifier",
]
