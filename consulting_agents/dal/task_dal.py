from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

COL = "tasks"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def task_id_from_description(description: str) -> str:
    """Tasks created from free text are keyed by their slugged description."""
    return description.lower().replace(" ", "-")


class TaskDAL:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[COL]

    async def ensure_indexes(self) -> None:
        await self.col.create_index([("project_id", ASCENDING)])
        await self.col.create_index([("status", ASCENDING)])

    async def get(self, task_id: str) -> Optional[Dict[str, Any]]:
        return await self.col.find_one({"_id": task_id})

    async def update_status(self, task_id: str, status: str) -> bool:
        r = await self.col.update_one(
            {"_id": task_id},
            {"$set": {"status": status, "updated_at": _now()}},
        )
        return r.matched_count == 1

    async def set_repository(self, task_id: str, *, repository_url: str, status: str) -> bool:
        r = await self.col.update_one(
            {"_id": task_id},
            {"$set": {"repository_url": repository_url, "status": status, "updated_at": _now()}},
        )
        return r.matched_count == 1

    async def upsert_tracking(
        self,
        task_id: str,
        *,
        project_id: str,
        description: str,
        assigned_to: str,
        status: str,
        deadline: Optional[int],
    ) -> Dict[str, Any]:
        """Mirror a tracker issue into the task table, creating the task if needed."""
        return await self.col.find_one_and_update(
            {"_id": task_id},
            {
                "$set": {
                    "status": status,
                    "assigned_to": assigned_to,
                    "deadline": deadline,
                    "updated_at": _now(),
                },
                "$setOnInsert": {
                    "project_id": project_id,
                    "description": description,
                    "created_at": _now(),
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
