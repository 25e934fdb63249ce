"""
Motor-backed implementations of the store interfaces.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..database import Database
from ..errors import NotFound
from ..models.business import Branch, Organization, QueuePoint, parse_business
from ..models.ticket import Ticket, TicketStatus

TIMESTAMP_FIELDS = ("joined_at", "served_at", "completed_at")


def _object_id(value: str, what: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFound(f"{what} '{value}' not found")


def _ticket_doc(ticket: Ticket) -> dict:
    doc = ticket.model_dump(mode="json", exclude={"id", "wait_minutes", "service_minutes"})
    # Keep instants as BSON dates, not ISO strings
    for field in TIMESTAMP_FIELDS:
        doc[field] = getattr(ticket, field)
    doc["last_activity_at"] = ticket.last_activity_at
    doc["_id"] = ObjectId(ticket.id)
    return doc


def _ticket_from_doc(doc: dict) -> Ticket:
    doc["_id"] = str(doc["_id"])
    return Ticket(**doc)


class MongoBusinessDirectory:
    """Businesses and queue points stored in MongoDB."""

    async def resolve(self, business_id: str) -> Union[Organization, Branch]:
        businesses = Database.get_collection("businesses")
        doc = await businesses.find_one({"_id": _object_id(business_id, "Business")})
        if not doc:
            raise NotFound(f"Business '{business_id}' not found")
        doc["_id"] = str(doc["_id"])
        return parse_business(doc)

    async def exists(self, business_id: str) -> bool:
        try:
            oid = ObjectId(business_id)
        except (InvalidId, TypeError):
            return False
        businesses = Database.get_collection("businesses")
        return await businesses.count_documents({"_id": oid}, limit=1) > 0

    async def timezone_of(self, business_id: str) -> Optional[str]:
        return (await self.resolve(business_id)).timezone

    async def branch_code_of(self, business_id: str) -> Optional[str]:
        return (await self.resolve(business_id)).code

    async def queue_points(self, business_id: str) -> List[QueuePoint]:
        points = Database.get_collection("queue_points")
        cursor = points.find({"business_id": business_id}).sort([("created_at", 1), ("_id", 1)])

        result = []
        async for point in cursor:
            point["_id"] = str(point["_id"])
            result.append(QueuePoint(**point))
        return result

    async def ensure_queue_point(self, business_id: str, name: str) -> QueuePoint:
        points = Database.get_collection("queue_points")
        query = {"business_id": business_id, "name": name}
        update = {
            "$setOnInsert": {
                "last_sequence": 0,
                "ticket_ids": [],
                "created_at": datetime.now(timezone.utc),
            }
        }
        try:
            doc = await points.find_one_and_update(
                query, update, upsert=True, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            # Lost the upsert race; the winner's document is there now
            doc = await points.find_one(query)
        doc["_id"] = str(doc["_id"])
        return QueuePoint(**doc)

    async def attach_ticket(self, queue_point_id: str, ticket_id: str, sequence: int) -> None:
        points = Database.get_collection("queue_points")
        result = await points.update_one(
            {"_id": _object_id(queue_point_id, "Queue point")},
            {"$push": {"ticket_ids": ticket_id}, "$max": {"last_sequence": sequence}},
        )
        if result.matched_count == 0:
            raise NotFound(f"Queue point '{queue_point_id}' not found")


class MongoTicketStore:
    """Tickets collection; status changes are compare-and-swap on ``status``."""

    async def create(self, ticket: Ticket) -> None:
        tickets = Database.get_collection("tickets")
        await tickets.insert_one(_ticket_doc(ticket))

    async def get(self, ticket_id: str) -> Ticket:
        tickets = Database.get_collection("tickets")
        doc = await tickets.find_one({"_id": _object_id(ticket_id, "Ticket")})
        if not doc:
            raise NotFound(f"Ticket '{ticket_id}' not found")
        return _ticket_from_doc(doc)

    async def compare_and_swap_status(
        self, ticket_id: str, expected_status: TicketStatus, new_ticket: Ticket
    ) -> bool:
        tickets = Database.get_collection("tickets")
        result = await tickets.replace_one(
            {"_id": _object_id(ticket_id, "Ticket"), "status": expected_status.value},
            _ticket_doc(new_ticket),
        )
        return result.matched_count == 1

    async def query_by_business_and_window(
        self,
        business_id: str,
        start: datetime,
        end: datetime,
        field: str = "joined_at",
    ) -> List[Ticket]:
        tickets = Database.get_collection("tickets")
        cursor = tickets.find({"business_id": business_id, field: {"$gte": start, "$lt": end}})

        result = []
        async for doc in cursor:
            result.append(_ticket_from_doc(doc))
        return result

    async def query_by_status(
        self, business_id: str, statuses: Iterable[TicketStatus]
    ) -> List[Ticket]:
        tickets = Database.get_collection("tickets")
        cursor = tickets.find({
            "business_id": business_id,
            "status": {"$in": [s.value for s in statuses]},
        })

        result = []
        async for doc in cursor:
            result.append(_ticket_from_doc(doc))
        return result

    async def recent(self, business_id: str, limit: int) -> List[Ticket]:
        tickets = Database.get_collection("tickets")
        cursor = tickets.find({"business_id": business_id}).sort("last_activity_at", -1).limit(limit)

        result = []
        async for doc in cursor:
            result.append(_ticket_from_doc(doc))
        return result


class MongoSequenceStore:
    """Daily counters incremented with a single find-and-modify upsert."""

    async def atomic_increment(self, business_id: str, day_key: str) -> int:
        sequences = Database.get_collection("sequences")
        query = {"_id": f"{business_id}:{day_key}"}
        update = {
            "$inc": {"value": 1},
            "$setOnInsert": {"business_id": business_id, "day": day_key},
        }
        try:
            doc = await sequences.find_one_and_update(
                query, update, upsert=True, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            # Two first-of-day upserts raced; the loser did not increment
            doc = await sequences.find_one_and_update(
                query, update, upsert=True, return_document=ReturnDocument.AFTER
            )
        return int(doc["value"])
