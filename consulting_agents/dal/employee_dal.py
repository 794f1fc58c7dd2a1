from __future__ import annotations

from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

COL = "employees"


class EmployeeDAL:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[COL]

    async def get(self, employee_id: str) -> Optional[Dict[str, Any]]:
        return await self.col.find_one({"_id": employee_id})
