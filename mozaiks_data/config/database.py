# mozaiks_data/config/database.py
from __future__ import annotations

import asyncio
import functools
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from mozaiks_data.config.settings import Settings

logger = logging.getLogger("mozaiks_data.database")


def create_mongo_client(settings: Settings) -> AsyncIOMotorClient:
    """Build the Motor client with pool and timeout limits from settings."""
    return AsyncIOMotorClient(
        settings.database_uri,
        maxPoolSize=settings.mongo_max_pool_size,
        minPoolSize=settings.mongo_min_pool_size,
        connectTimeoutMS=settings.mongo_connect_timeout_ms,
        serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
        retryWrites=True,
        w="majority",
    )


def get_database(client: AsyncIOMotorClient, settings: Settings) -> AsyncIOMotorDatabase:
    return client[settings.database_name]


async def verify_connection(client: AsyncIOMotorClient) -> bool:
    """Raise if the MongoDB deployment cannot be reached."""
    try:
        await client.server_info()
        logger.info("✅ Successfully connected to MongoDB")
        return True
    except Exception as e:
        logger.error(f"❌ MongoDB Connection Error: {e}")
        raise


def with_retry(max_retries=3, delay=1):
    """
    Retry an async bootstrap step with exponential backoff.

    Only used for startup work (index creation); request-path calls are never
    retried here.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            retries = 0
            current_delay = delay

            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    retries += 1
                    if retries > max_retries:
                        logger.error(f"Maximum retries ({max_retries}) exceeded for {func.__name__}: {e}")
                        raise

                    logger.warning(f"Retry {retries}/{max_retries} for {func.__name__} after error: {e}")
                    await asyncio.sleep(current_delay)
                    current_delay *= 2

        return wrapper
    return decorator
