from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from ..events.envelope import ProjectManagement

PROJECTS = "projects"
PROJECT_MANAGEMENT = "project_management"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProjectDAL:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[PROJECTS]

    async def ensure_indexes(self) -> None:
        await self.col.create_index([("client_id", ASCENDING)])

    async def create(
        self,
        *,
        project_id: str,
        client_id: str,
        name: str,
        description: str,
        status: str = "active",
    ) -> Dict[str, Any]:
        doc = {
            "_id": project_id,
            "client_id": client_id,
            "name": name,
            "description": description,
            "status": status,
            "created_at": _now(),
            "updated_at": _now(),
        }
        await self.col.insert_one(doc)
        return doc


class ProjectManagementDAL:
    """Append-only log of project-management data products."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[PROJECT_MANAGEMENT]

    async def ensure_indexes(self) -> None:
        await self.col.create_index([("project_id", ASCENDING), ("timestamp", ASCENDING)])

    async def record(self, entry: ProjectManagement, *, timestamp: int) -> Dict[str, Any]:
        doc = {
            "_id": str(uuid.uuid4()),
            "project_id": entry.project_id,
            "task": entry.task,
            "assigned_to": entry.assigned_to,
            "status": entry.status,
            "deadline": entry.deadline,
            "timestamp": timestamp,
            "created_at": _now(),
            "updated_at": _now(),
        }
        await self.col.insert_one(doc)
        return doc
