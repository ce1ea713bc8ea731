# product_ratings/core/logging_config.py

import logging

from .config import get_settings


def configure_logging(level: str = None):
    """Configure root logging for the service"""
    settings = get_settings()
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # SQLAlchemy is noisy at INFO; only surface it when explicitly requested
    if not settings.log_sql_queries:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
