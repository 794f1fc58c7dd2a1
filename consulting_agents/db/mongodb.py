# consulting_agents/db/mongodb.py
from __future__ import annotations

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from ..settings import Settings, settings

log = logging.getLogger("bus.mongodb")

# One client per agent process, shared by every DAL in the Store.
_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def make_client(cfg: Settings = settings) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(
        cfg.MONGO_URI,
        appname=cfg.SERVICE_NAME,
        serverSelectionTimeoutMS=cfg.MONGO_SERVER_SELECTION_TIMEOUT_MS,
    )


async def get_db(cfg: Settings = settings) -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = make_client(cfg)
        _db = _client[cfg.MONGO_DB]
        log.info("MongoDB client ready (db=%s)", cfg.MONGO_DB)
    return _db


async def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
        log.info("MongoDB client closed")
    _client = None
    _db = None
