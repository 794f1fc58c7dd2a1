from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from ..events.envelope import TestingResult

COL = "testing_results"


class TestingResultDAL:
    __test__ = False

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[COL]

    async def ensure_indexes(self) -> None:
        await self.col.create_index([("task_id", ASCENDING)])

    async def record(self, result: TestingResult) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc = {
            "_id": result.test_id,
            "task_id": result.task_id,
            "passed": result.passed,
            "timestamp": result.timestamp,
            "created_at": now,
            "updated_at": now,
        }
        await self.col.insert_one(doc)
        return doc

    async def list_for_task(self, task_id: str) -> List[Dict[str, Any]]:
        cur = self.col.find({"task_id": task_id}).sort("timestamp", ASCENDING)
        return [d async for d in cur]
