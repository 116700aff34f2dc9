import logging
import os
from app.core.config import settings

def setup_logging():
    """
    Sets up the logging configuration for the application.
    Logs to console and a file.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    # Create logs directory if it doesn't exist
    log_file_dir = os.path.dirname(settings.LOG_FILE_PATH)
    if log_file_dir and not os.path.exists(log_file_dir):
        os.makedirs(log_file_dir)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(), # Console handler
            logging.FileHandler(settings.LOG_FILE_PATH) # File handler
        ]
    )

    # The backfill issues one request per hour, keep the client libraries quiet
    logging.getLogger('uvicorn').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    logging.info(f"Logging configured at level: {settings.LOG_LEVEL.upper()}")
    logging.info(f"Logs will also be written to: {settings.LOG_FILE_PATH}")
