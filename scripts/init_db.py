"""
Database initialization script for OTPDesk

Creates indexes and the default admin account:
    python scripts/init_db.py
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

import logging

from otpdesk.core.config import settings
from otpdesk.db.mongo import connect_to_mongo, close_mongo_connection, get_database
from otpdesk.db.indexes import create_indexes
from otpdesk.services.auth_service import ensure_default_admin

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

COLLECTIONS = ["orders", "employees", "admins"]


async def main():
    logger.info("=" * 60)
    logger.info("  OTPDesk Database Setup")
    logger.info("=" * 60 + "\n")
    
    logger.info(f"🔌 Connecting to MongoDB: {settings.MONGODB_DB_NAME}")
    await connect_to_mongo()
    
    try:
        await create_indexes()
        await ensure_default_admin()
        
        db = get_database()
        logger.info("\n🔍 Verifying indexes...")
        for collection_name in COLLECTIONS:
            indexes = await db[collection_name].index_information()
            logger.info(f"\n  {collection_name}:")
            for idx_name in indexes.keys():
                if idx_name != "_id_":
                    logger.info(f"    ✅ {idx_name}")
        
        logger.info(f"\n📊 Current documents:")
        for collection_name in COLLECTIONS:
            count = await db[collection_name].count_documents({})
            logger.info(f"  {collection_name}: {count}")
        
        logger.info("\n✅ Database initialization complete!")
    
    except Exception as e:
        logger.error(f"\n❌ Error: {e}")
        raise
    
    finally:
        await close_mongo_connection()
    
    logger.info("\n" + "=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
