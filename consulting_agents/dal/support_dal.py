from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

TICKETS = "support_tickets"
RESOLUTIONS = "support_resolutions"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SupportTicketDAL:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.tickets = db[TICKETS]
        self.resolutions = db[RESOLUTIONS]

    async def ensure_indexes(self) -> None:
        await self.tickets.create_index([("client_id", ASCENDING)])
        await self.resolutions.create_index([("ticket_id", ASCENDING)], unique=True)

    async def get(self, ticket_id: str) -> Optional[Dict[str, Any]]:
        return await self.tickets.find_one({"_id": ticket_id})

    async def set_status(self, ticket_id: str, status: str) -> bool:
        r = await self.tickets.update_one(
            {"_id": ticket_id},
            {"$set": {"status": status, "updated_at": _now()}},
        )
        return r.matched_count == 1

    async def record_resolution(self, ticket_id: str, resolution: str, *, timestamp: int) -> bool:
        """
        At most one resolution per ticket. Returns True only when this call
        created it, so a redelivered event cannot add a second one.
        """
        r = await self.resolutions.update_one(
            {"_id": f"res-{ticket_id}"},
            {
                "$setOnInsert": {
                    "ticket_id": ticket_id,
                    "resolution": resolution,
                    "timestamp": timestamp,
                    "created_at": _now(),
                    "updated_at": _now(),
                }
            },
            upsert=True,
        )
        return r.upserted_id is not None

    async def get_resolution(self, ticket_id: str) -> Optional[Dict[str, Any]]:
        return await self.resolutions.find_one({"_id": f"res-{ticket_id}"})
