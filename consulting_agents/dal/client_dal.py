from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

COL = "clients"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ClientDAL:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[COL]

    async def ensure_indexes(self) -> None:
        await self.col.create_index([("email", ASCENDING)])

    async def get(self, client_id: str) -> Optional[Dict[str, Any]]:
        return await self.col.find_one({"_id": client_id})

    async def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self.col.find_one({"email": email})

    async def get_email(self, client_id: str) -> Optional[str]:
        d = await self.get(client_id)
        return d.get("email") if d else None

    async def create(
        self,
        *,
        client_id: str,
        name: str,
        email: str,
        phone: Optional[str] = None,
    ) -> Dict[str, Any]:
        doc = {
            "_id": client_id,
            "name": name,
            "email": email,
            "phone": phone,
            "created_at": _now(),
            "updated_at": _now(),
        }
        await self.col.insert_one(doc)
        return doc
