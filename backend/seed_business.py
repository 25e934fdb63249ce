import argparse
import asyncio
import sys

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient

from kwikq.config import get_settings
from kwikq.models.business import parse_business


async def seed_business(kind: str, name: str, code: str, timezone: str):
    settings = get_settings()

    print(f"Connecting to {settings.MONGODB_URL}...")
    client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
    db = client[settings.DATABASE_NAME]

    doc = {"_id": str(ObjectId()), "kind": kind, "name": name, "timezone": timezone or None}
    if kind == "branch":
        doc["branch_code"] = code
    else:
        doc["ticket_prefix"] = code or None

    # Validate against the same model the directory reads with
    business = parse_business(doc)

    try:
        await client.admin.command('ping')
        stored = business.model_dump(by_alias=True)
        stored["_id"] = ObjectId(business.id)
        await db["businesses"].insert_one(stored)
        print(f"Created {business.kind} '{business.name}' with id {business.id}")
    finally:
        client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Register a business for local testing")
    parser.add_argument("--kind", choices=["individual", "multi-root", "branch"], default="individual")
    parser.add_argument("--name", required=True)
    parser.add_argument("--code", default="", help="branch code or ticket prefix")
    parser.add_argument("--timezone", default="")
    args = parser.parse_args()

    if args.kind == "branch" and not args.code:
        parser.error("--code is required for branches")

    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(seed_business(args.kind, args.name, args.code, args.timezone))
