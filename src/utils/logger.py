"""
Logging Configuration
"""

from loguru import logger
import sys
from pathlib import Path
from typing import Optional

from src.config.settings import settings


def setup_logger():
    """
    Setup application logger with console, file and audit sinks

    Returns:
        logger: Configured logger instance
    """
    # Remove previously registered sinks
    logger.remove()

    Path(settings.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)

    # Console logging
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL,
        colorize=True
    )

    # File logging - all logs
    logger.add(
        settings.LOG_FILE,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level=settings.LOG_LEVEL,
        rotation="10 MB",
        retention="30 days",
        compression="zip"
    )

    # File logging - errors only
    logger.add(
        settings.ERROR_LOG_FILE,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="ERROR",
        rotation="10 MB",
        retention="90 days",
        compression="zip"
    )

    # File logging - audit trail
    logger.add(
        settings.AUDIT_LOG_FILE,
        format="{time:YYYY-MM-DD HH:mm:ss} | {message}",
        filter=lambda record: "AUDIT" in record["extra"],
        rotation="10 MB",
        retention="365 days",
        compression="zip"
    )

    return logger


def log_audit(user_id: int, action: str, entity_type: str, entity_id: Optional[int], details: str):
    """
    Log audit trail entry

    Args:
        user_id: User ID who performed the action
        action: Action performed
        entity_type: Kind of entity touched
        entity_id: Primary key of the entity
        details: Old and new values
    """
    logger.bind(AUDIT=True, entity_type=entity_type, entity_id=entity_id).info(
        f"USER_ID={user_id} | ACTION={action} | ENTITY={entity_type}#{entity_id} | DETAILS={details}"
    )

