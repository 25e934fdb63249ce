"""
Error taxonomy for the queue core.

Every core operation either returns its result or raises one of these.
The HTTP layer maps them to status codes; nothing in the core logs and
swallows them.
"""

import asyncio
from typing import Any, Awaitable, Optional, TypeVar

from pymongo.errors import PyMongoError

from .config import get_settings

T = TypeVar("T")


class QueueError(Exception):
    """Base class for every error raised by the queue core."""

    code = "queue_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.detail}


class NotFound(QueueError):
    """Unknown ticket, business or queue point."""

    code = "not_found"


class InvalidTransition(QueueError):
    """Attempted status edge that the ticket lifecycle does not allow."""

    code = "invalid_transition"

    def __init__(self, current: str, attempted: str, detail: Optional[str] = None):
        self.current = current
        self.attempted = attempted
        super().__init__(
            detail or f"Cannot apply '{attempted}' to a ticket in status '{current}'"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"current": self.current, "attempted": self.attempted})
        return data


class AllocationError(QueueError):
    """The sequence allocator could not issue a number."""

    code = "allocation_error"


class NotAlertable(QueueError):
    """Alert requested on a ticket that is not waiting for its turn."""

    code = "not_alertable"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Customer status is '{status}', cannot alert")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status"] = self.status
        return data


class IntegrityViolation(QueueError):
    """A timestamp ordering invariant would be broken."""

    code = "integrity_violation"


class DependencyError(QueueError):
    """Failure of a store or notifier; never a business-state failure."""

    code = "dependency_error"

    def __init__(self, detail: str, cause: Optional[BaseException] = None):
        super().__init__(detail)
        self.cause = cause


async def guarded(awaitable: Awaitable[T], what: str, timeout: Optional[float] = None) -> T:
    """Await a collaborator call with a bounded timeout.

    Timeouts and driver failures surface as ``DependencyError``; queue
    errors raised by the collaborator itself pass through untouched.
    """
    if timeout is None:
        timeout = get_settings().DEPENDENCY_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except QueueError:
        raise
    except asyncio.TimeoutError as e:
        raise DependencyError(f"{what} timed out after {timeout}s", e) from e
    except (PyMongoError, OSError) as e:
        raise DependencyError(f"{what} failed: {e}", e) from e


def error_payload(error: QueueError) -> dict[str, Any]:
    return {"detail": error.to_dict()}
