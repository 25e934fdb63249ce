"""
Analytics and dashboard models.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict
from datetime import datetime, timezone
from enum import Enum

from .ticket import Ticket


WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


class MetricsWindowKind(str, Enum):
    """Named analytics windows."""
    TODAY = "today"
    LAST_7_DAYS = "last_7_days"
    CUSTOM = "custom"


class MetricsWindow(BaseModel):
    """Analytics window request; start/end only used for custom windows."""
    kind: MetricsWindowKind = MetricsWindowKind.LAST_7_DAYS
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Bounds without an offset are read as UTC
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.kind == MetricsWindowKind.CUSTOM:
            if self.start is None or self.end is None:
                raise ValueError("custom windows need both start and end")
            if self.start >= self.end:
                raise ValueError("window start must be before its end")
        return self


class WeekdayCount(BaseModel):
    day: str
    count: int


class WeekdayValue(BaseModel):
    day: str
    value: float


class ServiceCount(BaseModel):
    service_type: str
    count: int


class MetricsReport(BaseModel):
    """Wait-time, service-time and volume statistics for one window."""
    business_id: str
    window: MetricsWindowKind
    start: datetime
    end: datetime
    generated_at: datetime
    total_tickets: int = 0
    average_wait_minutes: float = 0.0
    average_service_minutes: float = 0.0
    completed_in_window: int = 0
    cancelled_or_no_show: int = 0
    completion_rate: float = Field(0.0, description="Completed share of tickets, percent")
    weekly_volume: List[WeekdayCount] = []
    wait_time_trend: List[WeekdayValue] = []
    peak_hours: Dict[int, int] = {}
    service_distribution: List[ServiceCount] = []
    top_services: List[ServiceCount] = []


class DashboardStat(BaseModel):
    current: float
    percentage_change: int


class DashboardMetrics(BaseModel):
    """Today's headline numbers compared with the previous day."""
    business_id: str
    active_in_queue: DashboardStat
    average_wait_time: DashboardStat
    served_today: DashboardStat


class QueuePointSummary(BaseModel):
    id: str
    name: str
    total_tickets: int
    waiting_count: int


class QueueOverview(BaseModel):
    """Per queue point counts for a business."""
    business_id: str
    total_waiting: int
    queue_points: List[QueuePointSummary] = []


class ActivityEntry(BaseModel):
    full_name: str
    ticket_number: str
    action: str
    minutes_ago: int


class QueueHistory(BaseModel):
    """Tickets that joined in a window, with the window's headline figures."""
    business_id: str
    start: datetime
    end: datetime
    tickets: List[Ticket] = []
    completed_in_window: int = 0
    average_wait_minutes: float = 0.0
    cancelled_or_no_show: int = 0
