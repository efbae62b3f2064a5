"""
otpdesk/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Collections: orders, employees, admins
- Health checks and retry logic
- Proper connection lifecycle management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio
from otpdesk.core.config import settings
from otpdesk.core.logging import get_logger

logger = get_logger(__name__)

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database
    
    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return
    
    max_retries = 3
    retry_delay = 2
    
    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )
            
            _client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=20,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )
            _database = _client[settings.MONGODB_DB_NAME]
            
            # Verify connection
            await _client.admin.command("ping")
            
            logger.info(f"✅ Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}")
            return
            
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            _client = None
            _database = None
            
            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database
    
    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def use_database(database) -> None:
    """
    Installs an already-built database handle (used by tests and scripts
    that manage their own client).
    """
    global _database
    _database = database


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.
    
    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _database is None:
            logger.error("MongoDB database not initialized")
            return False
        
        await _database.command("ping")
        return True
        
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.
    
    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_orders_collection():
    """
    Returns the orders collection.
    
    Fields:
    - orderId: str (unique, provider-issued)
    - phoneNumber: str
    - employeeId: str (hex id of the owning employee)
    - employeeName: str
    - status: pending | completed | cancelled
    - smsCode: str | None
    - dismissed: bool
    - date: str (YYYY-MM-DD), time: str (HH:MM:SS) in settings.TIMEZONE
    - service, operator, country: str
    - createdAt, updatedAt, completedAt, cancelledAt, dismissedAt: datetime (UTC)
    """
    return get_database()["orders"]


def get_employees_collection():
    """
    Returns the employees collection.
    
    Fields: name, username (unique, lower-case), email, passwordHash,
    status (active | inactive), createdDate
    """
    return get_database()["employees"]


def get_admins_collection():
    """
    Returns the admins collection (username, passwordHash).
    """
    return get_database()["admins"]
