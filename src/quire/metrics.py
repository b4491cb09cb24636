"""Prometheus metrics definitions for Quire."""

from functools import wraps

from prometheus_client import Counter, Histogram

# Business metrics
content_mutations = Counter(
    "quire_content_mutations_total",
    "Content mutations by operation and outcome",
    ["operation", "outcome"],  # outcome: ok or a failure kind
)

conflict_resolutions = Counter(
    "quire_conflict_resolutions_total",
    "Inserts retried with a unique suffix after a slug or title conflict",
)

sync_files = Counter(
    "quire_sync_files_total",
    "Files processed by the bulk synchronizer",
    ["result"],  # success, skipped, error
)

# Cache
cache_lookups = Counter(
    "quire_cache_lookups_total",
    "Cache lookups by key kind and result",
    ["kind", "result"],  # kind: access, md, html.body, listing; result: hit, miss
)

cache_evictions = Counter(
    "quire_cache_evictions_total",
    "Cache entries evicted by tag",
    ["tag"],
)

# Timing
database_operation_duration = Histogram(
    "quire_database_operation_duration_seconds",
    "Database operation duration",
    ["operation"],
)

# Error tracking
operation_errors = Counter(
    "quire_operation_errors_total",
    "Total errors by operation",
    ["operation", "error_type"],
)


def track_operation(operation: str, metric: Histogram = database_operation_duration):
    """Decorator for tracking async operations with metrics.

    Automatically times the operation and tracks errors. Failure values are
    ordinary returns and are not counted as errors.

    Example:
        @track_operation("create_content")
        async def create_content(self, owner, contents):
            ...
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            with metric.labels(operation=operation).time():
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    operation_errors.labels(
                        operation=operation,
                        error_type=type(e).__name__,
                    ).inc()
                    raise

        return wrapper

    return decorator


def cache_key_kind(key: str) -> str:
    """Label for a cache key: the part before the first slash."""
    return key.split("/", 1)[0]
