from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

COL = "documents"


class DocumentDAL:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[COL]

    async def ensure_indexes(self) -> None:
        await self.col.create_index([("project_id", ASCENDING), ("processed", ASCENDING)])

    async def get(self, document_id: str) -> Optional[Dict[str, Any]]:
        return await self.col.find_one({"_id": document_id})

    async def mark_processed(self, document_id: str) -> bool:
        r = await self.col.update_one(
            {"_id": document_id},
            {"$set": {"processed": True, "updated_at": datetime.now(timezone.utc)}},
        )
        return r.matched_count == 1
