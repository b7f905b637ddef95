"""
Structured logging for the farm shop engine.

Every engine module logs under the "farmshop" namespace with structured
extras (session_id, stage, latencies). Nothing is printed until the
embedding application calls setup_logging(), which attaches a console
handler and daily-rotating JSON files.

Usage:
    from core.structured_logging import get_logger, log_search

    _logger = get_logger("core.search")
    _logger.debug("Stage exact: 2 products", extra={"stage": "exact"})

    log_search(session_id="abc", query="tomatoes", stage="exact", ...)
"""

import json
import logging
import sys
import time
import traceback
import uuid
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Dict, Optional


LOGGER_NAMESPACE = "farmshop"


# =============================================================================
# Formatters
# =============================================================================

class JSONFormatter(logging.Formatter):
    """
    One JSON object per record, for the rotating log files.

    Only whitelisted extra fields are written, so arbitrary attributes on
    a record never leak into the log:
    {"timestamp": "...Z", "level": "INFO", "logger": "farmshop.search",
     "message": "...", "event": "search_complete", "stage": "fuzzy_name"}
    """

    EXTRA_FIELDS = [
        "event", "session_id",
        # Search
        "query", "stage", "filters", "products_found", "products_shown",
        "product_ids", "match_quality", "catalog_size",
        # Recommendation
        "cart_size", "k", "sources", "shuffle_policy",
        # Errors
        "error_type", "stack_trace", "context",
        # Timing
        "search_latency_ms", "recommend_latency_ms", "filter_latency_ms",
        "total_latency_ms", "elapsed_ms", "function",
    ]

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_data["error_type"] = record.exc_info[0].__name__
            log_data["stack_trace"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Single-line console output:
    2026-10-18 10:30:00 | INFO     | farmshop.search | Search complete | session_id=abc, stage=exact
    """

    CONTEXT_FIELDS = ("session_id", "event", "stage", "total_latency_ms")

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        msg = f"{timestamp} | {record.levelname:8} | {record.name} | {record.getMessage()}"

        context = [
            f"{field}={getattr(record, field)}"
            for field in self.CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        ]
        if context:
            msg += f" | {', '.join(context)}"

        if record.exc_info:
            msg += f"\n{self.formatException(record.exc_info)}"
        return msg


# =============================================================================
# Logger Setup
# =============================================================================

_initialized = False


def _daily_file_handler(path: Path, level: int) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=30,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.suffix = "%Y-%m-%d"
    return handler


def setup_logging(
    log_dir: str = "logs",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    enable_console: bool = True,
    enable_file: bool = True,
    enable_error_log: bool = True,
    force: bool = False,
) -> None:
    """
    Attach handlers to the farmshop logger namespace.

    The engine never calls this itself; the embedding application does,
    once, at startup. Writes logs/farmshop.log (everything, JSON) and
    logs/errors.log (ERROR and above), both rotated daily and kept 30 days.

    Args:
        log_dir: Directory for log files
        console_level: Minimum level for console output
        file_level: Minimum level for farmshop.log
        enable_console: Log to stdout
        enable_file: Write farmshop.log
        enable_error_log: Write errors.log
        force: Replace handlers from an earlier call
    """
    global _initialized
    if _initialized and not force:
        return

    root_logger = logging.getLogger(LOGGER_NAMESPACE)
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers = []

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(ConsoleFormatter())
        root_logger.addHandler(console_handler)

    if enable_file or enable_error_log:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        if enable_file:
            root_logger.addHandler(_daily_file_handler(log_path / "farmshop.log", file_level))
        if enable_error_log:
            root_logger.addHandler(_daily_file_handler(log_path / "errors.log", logging.ERROR))

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Logger under the farmshop namespace.

    Example:
        _logger = get_logger("core.search")   # -> farmshop.core.search
    """
    if not name.startswith(LOGGER_NAMESPACE + "."):
        name = f"{LOGGER_NAMESPACE}.{name}"
    return logging.getLogger(name)


# =============================================================================
# Context Manager for Session Tracking
# =============================================================================

class LogContext:
    """
    Context manager for tracking per-request logging context.

    Usage:
        with LogContext(session_id="abc123") as ctx:
            ctx.log_request("search", query="carrots")
            # ... do work ...
            ctx.log_done("search", products_found=5)
    """

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or str(uuid.uuid4())[:8]
        self.start_time = None
        self.logger = get_logger("context")

    def __enter__(self) -> "LogContext":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.log_error(exc_val, exc_tb)
        return False  # Don't suppress exceptions

    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds."""
        if self.start_time is None:
            return 0.0
        return (time.perf_counter() - self.start_time) * 1000

    def log_request(self, operation: str, **extra) -> None:
        """Log an incoming engine call."""
        self.logger.debug(
            f"{operation} requested",
            extra={
                "event": f"{operation}_request",
                "session_id": self.session_id,
                **extra
            }
        )

    def log_done(self, operation: str, **extra) -> None:
        """Log completion of an engine call."""
        self.logger.info(
            f"{operation} done",
            extra={
                "event": f"{operation}_done",
                "session_id": self.session_id,
                "total_latency_ms": round(self.elapsed_ms(), 2),
                **extra
            }
        )

    def log_error(self, error: Exception, tb=None) -> None:
        """Log an error raised inside the context."""
        self.logger.error(
            f"Error: {error}",
            extra={
                "event": "error",
                "session_id": self.session_id,
                "error_type": type(error).__name__,
                "stack_trace": "".join(traceback.format_tb(tb)) if tb else None,
            },
            exc_info=(type(error), error, tb) if tb else None
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def log_filters(
    session_id: Optional[str],
    filters: Dict[str, Any],
    catalog_size: int,
    products_found: int,
    filter_time_ms: float = 0.0,
    **extra
) -> None:
    """
    Log a catalog filter pass.

    Args:
        session_id: Session identifier
        filters: Active filter criteria
        catalog_size: Records before filtering
        products_found: Records kept
        filter_time_ms: Time taken to filter
        **extra: Additional fields
    """
    logger = get_logger("filters")
    logger.debug(
        f"Filters applied: {products_found}/{catalog_size} kept",
        extra={
            "event": "filters_applied",
            "session_id": session_id,
            "filters": filters,
            "catalog_size": catalog_size,
            "products_found": products_found,
            "filter_latency_ms": round(filter_time_ms, 2),
            **extra
        }
    )


def log_search(
    session_id: Optional[str],
    query: str,
    stage: str,
    products_found: int,
    search_time_ms: float,
    filters: Optional[Dict[str, Any]] = None,
    product_ids: Optional[list] = None,
    **extra
) -> None:
    """
    Log search result.

    Args:
        session_id: Session identifier
        query: Normalized query
        stage: Match stage that produced the results
        products_found: Number of products returned
        search_time_ms: Time taken to search
        filters: Filter criteria used
        product_ids: First few product ids returned
        **extra: Additional fields
    """
    logger = get_logger("search")
    logger.info(
        f"Search complete: {products_found} products found (stage: {stage})",
        extra={
            "event": "search_complete",
            "session_id": session_id,
            "query": query,
            "stage": stage,
            "filters": filters or {},
            "products_found": products_found,
            "product_ids": (product_ids or [])[:10],
            "search_latency_ms": round(search_time_ms, 2),
            **extra
        }
    )


def log_recommendation(
    session_id: Optional[str],
    cart_size: int,
    k: int,
    product_ids: list,
    sources: Optional[Dict[str, int]] = None,
    recommend_time_ms: float = 0.0,
    **extra
) -> None:
    """
    Log a recommendation result.

    Args:
        session_id: Session identifier
        cart_size: Number of cart lines
        k: Requested number of recommendations
        product_ids: Recommended product ids
        sources: Count of products per recommendation pass
        recommend_time_ms: Time taken
        **extra: Additional fields
    """
    logger = get_logger("recommend")
    logger.info(
        f"Recommended {len(product_ids)} of {k} products",
        extra={
            "event": "recommendation_complete",
            "session_id": session_id,
            "cart_size": cart_size,
            "k": k,
            "product_ids": product_ids,
            "products_shown": len(product_ids),
            "sources": sources or {},
            "recommend_latency_ms": round(recommend_time_ms, 2),
            **extra
        }
    )


def log_error(
    session_id: Optional[str],
    error: Exception,
    context: Optional[str] = None,
    **extra
) -> None:
    """
    Log an error with full context.

    Args:
        session_id: Session identifier
        error: The exception
        context: What was happening
        **extra: Additional fields
    """
    logger = get_logger("error")
    logger.error(
        f"Error: {type(error).__name__}: {error}",
        extra={
            "event": "error",
            "session_id": session_id,
            "error_type": type(error).__name__,
            "stack_trace": traceback.format_exc(),
            "context": context,
            **extra
        },
        exc_info=True
    )


# =============================================================================
# Timing
# =============================================================================

def timed(event_name: str, logger_name: str = "performance"):
    """
    Decorator that logs how long a call took, or how long it ran before failing.

    Usage:
        @timed("catalog_load")
        def load_catalog(path: str) -> list:
            ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            with Timer() as timer:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    logger.error(
                        f"{event_name} failed",
                        extra={
                            "event": f"{event_name}_error",
                            "function": func.__name__,
                            "error_type": type(e).__name__,
                        },
                        exc_info=True
                    )
                    raise
                finally:
                    logger.debug(
                        f"{event_name} took {timer.elapsed_ms:.2f}ms",
                        extra={
                            "event": f"{event_name}_timing",
                            "elapsed_ms": round(timer.elapsed_ms, 2),
                            "function": func.__name__,
                        }
                    )
        return wrapper
    return decorator


class Timer:
    """
    Times a block; elapsed_ms is live inside the block and final after it.

    Usage:
        with Timer() as t:
            ...
        log_search(..., search_time_ms=t.elapsed_ms)
    """

    def __init__(self):
        self.start_time = None
        self._final_ms = None

    @property
    def elapsed_ms(self) -> float:
        if self.start_time is None:
            return 0.0
        if self._final_ms is not None:
            return self._final_ms
        return (time.perf_counter() - self.start_time) * 1000

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        self._final_ms = None
        return self

    def __exit__(self, *args) -> None:
        self._final_ms = (time.perf_counter() - self.start_time) * 1000
