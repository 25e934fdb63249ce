"""
Queue ticket models.

A ticket is a single customer's entry in a queue. Its durations are derived
from its timestamps and are never stored independently.
"""

from pydantic import BaseModel, EmailStr, Field, computed_field, field_validator
from typing import Optional
from datetime import datetime, timedelta
from enum import Enum


class TicketStatus(str, Enum):
    """Ticket lifecycle states."""
    WAITING = "waiting"
    ALERTED = "alerted"
    IN_SERVICE = "in_service"
    COMPLETED = "completed"
    CANCELED = "canceled"
    NO_SHOW = "no_show"
    SKIPPED = "skipped"


TERMINAL_STATUSES = frozenset(
    {TicketStatus.COMPLETED, TicketStatus.CANCELED, TicketStatus.NO_SHOW}
)
ACTIVE_STATUSES = frozenset(
    {TicketStatus.WAITING, TicketStatus.ALERTED, TicketStatus.IN_SERVICE}
)


class Trigger(str, Enum):
    """Operator actions that move a ticket between states."""
    ALERT = "alert"
    SERVE = "serve"
    COMPLETE = "complete"
    CANCEL = "cancel"
    SKIP = "skip"
    NO_SHOW = "mark_no_show"


class ServiceType(str, Enum):
    """Service a customer declares on the intake form."""
    ACCOUNT_OPENING = "accountOpening"
    LOAN_COLLECTION = "loanCollection"
    CARD_COLLECTION = "cardCollection"
    FUND_TRANSFER = "fundTransfer"
    ACCOUNT_UPDATE = "accountUpdate"
    GENERAL_INQUIRY = "generalInquiry"
    COMPLAINT_RESOLUTION = "complaintResolution"
    OTHER = "other"


class PriorityStatus(str, Enum):
    """Priority category declared on the intake form."""
    REGULAR = "regularStandard"
    ELDERLY_OR_DISABLED = "elderlyOrDisabled"
    PREGNANT = "pregnantWoman"
    EMERGENCY = "emergencyOrUrgent"


PRIORITY_LEVELS = {
    PriorityStatus.REGULAR: 0,
    PriorityStatus.ELDERLY_OR_DISABLED: 1,
    PriorityStatus.PREGNANT: 1,
    PriorityStatus.EMERGENCY: 2,
}


class FormDetails(BaseModel):
    """Intake form filled by the customer when joining."""
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    service_needed: Optional[ServiceType] = None
    additional_info: Optional[str] = None
    priority_status: PriorityStatus = PriorityStatus.REGULAR

    @field_validator("service_needed", mode="before")
    @classmethod
    def normalize_service(cls, value):
        # Anything outside the known list is filed under "other"
        if value is None or value == "":
            return None
        if isinstance(value, ServiceType):
            return value
        try:
            return ServiceType(value)
        except ValueError:
            return ServiceType.OTHER

    @property
    def priority(self) -> int:
        return PRIORITY_LEVELS[self.priority_status]


class TicketCreate(BaseModel):
    """Request to join a queue."""
    form_details: FormDetails
    queue_point_id: Optional[str] = Field(
        None, description="Explicit queue point; round robin when omitted"
    )


class Ticket(BaseModel):
    """A customer in queue."""
    id: str = Field(..., alias="_id")
    business_id: str
    queue_point_id: str
    queue_point_name: Optional[str] = None
    ticket_number: str = Field(..., description="Display number like LAG-001")
    sequence: int = Field(..., ge=1)
    service_day: str = Field(..., description="Local calendar day, YYYY-MM-DD")
    status: TicketStatus = TicketStatus.WAITING
    priority: int = 0
    form_details: FormDetails
    joined_at: datetime
    served_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    wait_minutes: Optional[float] = Field(
        None, description="Wait in minutes as of the read; never stored"
    )

    class Config:
        populate_by_name = True

    def wait_time(self, now: datetime) -> timedelta:
        """Time from joining until served, or until now while still queued."""
        end = self.served_at or self.completed_at or now
        return max(timedelta(0), end - self.joined_at)

    def service_time(self) -> Optional[timedelta]:
        """Time from service start to completion, once both are known."""
        if self.served_at is None or self.completed_at is None:
            return None
        return self.completed_at - self.served_at

    def observed_at(self, now: datetime) -> "Ticket":
        """Copy of the ticket carrying its wait as of ``now``."""
        minutes = round(self.wait_time(now).total_seconds() / 60, 1)
        return self.model_copy(update={"wait_minutes": minutes})

    @computed_field
    @property
    def service_minutes(self) -> Optional[float]:
        elapsed = self.service_time()
        if elapsed is None:
            return None
        return round(elapsed.total_seconds() / 60, 1)

    @property
    def last_activity_at(self) -> datetime:
        return self.completed_at or self.served_at or self.joined_at


class AlertResult(BaseModel):
    """Outcome of an alert: the ticket state plus notification delivery."""
    ticket: Ticket
    notified: bool
    notification_error: Optional[str] = None
