"""
otpdesk/db/indexes.py

Purpose: Database index management

- Unique indexes that back provider order ids and usernames
- Lookup indexes for the employee board and admin statistics
"""

from pymongo import ASCENDING, DESCENDING
from otpdesk.db.mongo import (
    get_orders_collection,
    get_employees_collection,
    get_admins_collection
)
from otpdesk.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        orders = get_orders_collection()
        employees = get_employees_collection()
        admins = get_admins_collection()
        
        logger.info("Creating database indexes...")
        
        # ==============================================
        # ORDERS COLLECTION INDEXES
        # ==============================================
        
        await orders.create_index("orderId", unique=True, name="order_id_unique")
        logger.debug("Created unique index on orders.orderId")
        
        # Employee board: active orders newest first
        await orders.create_index(
            [("employeeId", ASCENDING), ("status", ASCENDING), ("createdAt", DESCENDING)],
            name="employee_status_created_idx"
        )
        logger.debug("Created compound index on orders.employeeId + status + createdAt")
        
        # Daily statistics
        await orders.create_index("date", name="order_date_idx")
        logger.debug("Created index on orders.date")
        
        await orders.create_index([("createdAt", DESCENDING)], name="order_created_idx")
        logger.debug("Created index on orders.createdAt")
        
        # ==============================================
        # ACCOUNT COLLECTION INDEXES
        # ==============================================
        
        await employees.create_index("username", unique=True, name="username_unique")
        logger.debug("Created unique index on employees.username")
        
        await admins.create_index("username", unique=True, name="admin_username_unique")
        logger.debug("Created unique index on admins.username")
        
        logger.info("✅ All database indexes created successfully")
        
    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise
