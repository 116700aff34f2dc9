import sys
import os
import logging

# Add parent directory to path to allow imports from `app`
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app.core.db import engine, Base
from app.models.token import Token, TokenPriceData  # noqa: F401
from app.core.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


def create_tables():
    logger.info("Starting database table creation.")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info(f"Database tables created successfully: {sorted(Base.metadata.tables)}")
    except Exception as e:
        logger.critical(f"Failed to create database tables: {e}", exc_info=True)
        sys.exit(1) # Exit if table creation fails


if __name__ == "__main__":
    create_tables()
    logger.info("Database setup script completed.")
