# product_ratings/main.py

import logging

from fastapi import FastAPI

from product_ratings.core.config import settings
from product_ratings.core.database import init_db
from product_ratings.core.exceptions import register_exception_handlers
from product_ratings.core.logging_config import configure_logging
from product_ratings.modules.reviews.routers.reviews_router import router as reviews_router

logger = logging.getLogger(__name__)


def create_app(create_tables: bool = True) -> FastAPI:
    """Build the FastAPI application"""

    configure_logging()

    app = FastAPI(
        title="Product Ratings",
        description="Per-product reviews with incrementally maintained rating averages.",
        version="1.0.0",
        debug=settings.debug,
    )

    register_exception_handlers(app)
    app.include_router(reviews_router)

    @app.get("/health", tags=["health"])
    def health() -> dict:
        return {"status": "ok", "environment": settings.environment}

    if create_tables:
        init_db()

    logger.info(f"Product ratings service ready ({settings.environment})")
    return app


app = create_app()
