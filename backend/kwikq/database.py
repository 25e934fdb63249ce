"""
MongoDB async database connection using Motor.
Provides database instance and collection access.
"""

import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        """Connect to MongoDB."""
        # tz_aware so stored instants come back as UTC-aware datetimes
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
        cls.db = cls.client[settings.DATABASE_NAME]

        # Verify connection
        await cls.client.admin.command('ping')
        logger.info("Connected to MongoDB", extra={"database": settings.DATABASE_NAME})

        # Create indexes
        await cls._create_indexes()

    @classmethod
    async def disconnect(cls):
        """Disconnect from MongoDB."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    async def _create_indexes(cls):
        """Create database indexes for performance."""
        if cls.db is None:
            return

        # Tickets: one number per business and local day
        await cls.db.tickets.create_index(
            [("business_id", 1), ("service_day", 1), ("ticket_number", 1)], unique=True
        )
        await cls.db.tickets.create_index([("business_id", 1), ("status", 1)])
        await cls.db.tickets.create_index([("business_id", 1), ("joined_at", 1)])
        await cls.db.tickets.create_index([("business_id", 1), ("completed_at", 1)])
        await cls.db.tickets.create_index([("business_id", 1), ("last_activity_at", -1)])

        # Queue points: provisioning is an idempotent upsert on this key
        await cls.db.queue_points.create_index(
            [("business_id", 1), ("name", 1)], unique=True
        )

        logger.info("Database indexes created")

    @classmethod
    def get_collection(cls, name: str):
        """Get a collection by name."""
        if cls.db is None:
            raise RuntimeError("Database not connected")
        return cls.db[name]
