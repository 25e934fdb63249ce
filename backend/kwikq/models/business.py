"""
Business (organization or branch) and queue point models.
"""

from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, Optional, List, Literal, Union
from datetime import datetime
from enum import Enum


class BusinessKind(str, Enum):
    """Kinds of tenant that can own a queue."""
    INDIVIDUAL = "individual"
    MULTI_ROOT = "multi-root"
    BRANCH = "branch"


class BusinessBase(BaseModel):
    """Fields shared by organizations and branches."""
    id: str = Field(..., alias="_id")
    name: str
    timezone: Optional[str] = Field(None, description="IANA zone, e.g. Africa/Lagos")

    class Config:
        populate_by_name = True


class Organization(BusinessBase):
    """An individual business or the root of a multi-branch organization."""
    kind: Literal["individual", "multi-root"] = "individual"
    ticket_prefix: Optional[str] = None

    @property
    def code(self) -> Optional[str]:
        return self.ticket_prefix


class Branch(BusinessBase):
    """A branch of a multi-branch organization."""
    kind: Literal["branch"] = "branch"
    organization_id: Optional[str] = None
    branch_code: str = Field(..., min_length=1, max_length=16)

    @property
    def code(self) -> Optional[str]:
        return self.branch_code


Business = Annotated[Union[Organization, Branch], Field(discriminator="kind")]

business_adapter = TypeAdapter(Business)


def parse_business(doc: dict) -> Union[Organization, Branch]:
    """Build the tagged business variant from a stored document."""
    return business_adapter.validate_python(doc)


class QueuePoint(BaseModel):
    """A named service channel customers line up for."""
    id: str = Field(..., alias="_id")
    business_id: str
    name: str
    last_sequence: int = Field(default=0, ge=0)
    ticket_ids: List[str] = []
    created_at: datetime

    class Config:
        populate_by_name = True
