# app/infra/mongo.py

import pymongo
from pymongo import MongoClient
from pymongo.errors import PyMongoError
import structlog

from app.core.config import settings

logger = structlog.get_logger()

_MONGO_CLIENT = None

PING_TIMEOUT_SECONDS = 2


def get_mongo_client() -> MongoClient:
    """Process-wide pooled client, created on first use."""
    global _MONGO_CLIENT
    if _MONGO_CLIENT is None:
        _MONGO_CLIENT = MongoClient(
            settings.MONGODB_URI,
            maxPoolSize=50,
            serverSelectionTimeoutMS=5000,
            tz_aware=True,
        )
    return _MONGO_CLIENT


def get_db():
    client = get_mongo_client()
    return client.get_default_database(default=settings.MONGODB_DB_NAME)


def get_messages_collection():
    return get_db()[settings.MONGODB_COLLECTION]


def close_mongo_client():
    global _MONGO_CLIENT
    if _MONGO_CLIENT is not None:
        _MONGO_CLIENT.close()
        _MONGO_CLIENT = None


def ping_store() -> bool:
    """
    Ping the store. Used by the health check.
    """
    try:
        with pymongo.timeout(PING_TIMEOUT_SECONDS):
            get_mongo_client().admin.command("ping")
        return True
    except PyMongoError as e:
        logger.error("store_connection_failed", error_type=type(e).__name__)
        return False
