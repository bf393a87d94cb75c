"""
MongoDB client factory.

One AsyncMongoClient is created at application startup (see the lifespan
in tours_api/main.py) and closed on shutdown. Nothing in this module keeps
global state: the client and database are handed to the repositories,
which are then injected into route handlers.
"""

import logging

from pymongo import ASCENDING, AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

logger = logging.getLogger(__name__)


def create_client(uri: str) -> AsyncMongoClient:
    """
    Create a MongoDB client for the given connection string.

    Raises:
        ValueError: If the connection string is empty
    """
    if not uri:
        raise ValueError("MONGODB_URI is missing in environment variables")
    return AsyncMongoClient(uri, tz_aware=True)


async def connect(client: AsyncMongoClient, database_name: str) -> AsyncDatabase:
    """
    Verify the server is reachable and return the application database.

    Raises:
        pymongo.errors.PyMongoError: If the server cannot be reached
    """
    try:
        await client.admin.command("ping")
    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")
        raise

    logger.info("MongoDB connected")
    return client[database_name]


async def ensure_indexes(database: AsyncDatabase) -> None:
    """Create the unique indexes the data model relies on."""
    await database["tours"].create_index([("name", ASCENDING)], unique=True)
    await database["users"].create_index([("email", ASCENDING)], unique=True)
    logger.debug("MongoDB indexes ensured")


async def close(client: AsyncMongoClient) -> None:
    await client.close()
    logger.info("MongoDB connection closed.")
