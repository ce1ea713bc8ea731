# product_ratings/core/query_logger.py

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict

from sqlalchemy import event
from sqlalchemy.engine import Engine

from .config import get_settings

logger = logging.getLogger("sqlalchemy.engine")
query_logger = logging.getLogger("query_performance")

settings = get_settings()


class QueryLogger:
    """Collects per-statement timings and flags slow queries.

    Counters are shared by every pooled connection without a lock, so under
    concurrent load they are approximate.
    """

    def __init__(self):
        self.slow_query_threshold = settings.slow_query_threshold_seconds
        self.query_stats: Dict[str, Any] = {
            "total_queries": 0,
            "slow_queries": 0,
            "total_time": 0.0,
        }

    def record(self, elapsed: float, statement: str):
        self.query_stats["total_queries"] += 1
        self.query_stats["total_time"] += elapsed

        if elapsed > self.slow_query_threshold:
            self.query_stats["slow_queries"] += 1
            query_logger.warning(f"SLOW QUERY ({elapsed:.3f}s): {statement[:200]}...")

    def reset_stats(self):
        """Reset query statistics"""
        self.query_stats = {
            "total_queries": 0,
            "slow_queries": 0,
            "total_time": 0.0,
        }


# Singleton instance
query_logger_instance = QueryLogger()


def setup_query_logging(engine: Engine):
    """
    Attach timing listeners to an SQLAlchemy engine

    Args:
        engine: SQLAlchemy engine instance
    """

    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

        if settings.log_sql_queries:
            logger.debug("Start Query: %s", statement)

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        total_time = time.perf_counter() - conn.info["query_start_time"].pop(-1)
        query_logger_instance.record(total_time, statement)

        if settings.log_sql_queries:
            logger.debug("Query Complete in %.3fs", total_time)


@contextmanager
def log_query_performance(operation_name: str):
    """
    Context manager to log performance of a database operation

    Args:
        operation_name: Name of the operation being performed

    Example:
        with log_query_performance("create_review"):
            coordinator.create_review(...)
    """
    start_queries = query_logger_instance.query_stats["total_queries"]
    start_time = time.perf_counter()

    try:
        yield
    finally:
        elapsed_time = time.perf_counter() - start_time
        query_count = query_logger_instance.query_stats["total_queries"] - start_queries

        query_logger.debug(
            f"Operation '{operation_name}': {query_count} queries in {elapsed_time:.3f}s"
        )
