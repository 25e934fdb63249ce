"""Pydantic models for KwikQ."""

from .business import BusinessKind, Organization, Branch, Business, QueuePoint, parse_business
from .ticket import (
    Ticket,
    TicketCreate,
    TicketStatus,
    Trigger,
    FormDetails,
    ServiceType,
    PriorityStatus,
    AlertResult,
    TERMINAL_STATUSES,
    ACTIVE_STATUSES,
)
from .metrics import (
    MetricsWindow,
    MetricsWindowKind,
    MetricsReport,
    DashboardMetrics,
    DashboardStat,
    QueueOverview,
    QueueHistory,
    QueuePointSummary,
    ActivityEntry,
    ServiceCount,
    WeekdayCount,
    WeekdayValue,
)

__all__ = [
    # Business
    "BusinessKind", "Organization", "Branch", "Business", "QueuePoint", "parse_business",
    # Ticket
    "Ticket", "TicketCreate", "TicketStatus", "Trigger", "FormDetails",
    "ServiceType", "PriorityStatus", "AlertResult", "TERMINAL_STATUSES", "ACTIVE_STATUSES",
    # Metrics
    "MetricsWindow", "MetricsWindowKind", "MetricsReport", "DashboardMetrics", "DashboardStat",
    "QueueOverview", "QueueHistory", "QueuePointSummary", "ActivityEntry",
    "ServiceCount", "WeekdayCount", "WeekdayValue",
]
