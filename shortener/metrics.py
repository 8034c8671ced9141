"""Prometheus metrics shared by the resolver, the service and the click recorder."""

from prometheus_client import Counter, Histogram

__all__ = [
    "LINK_CREATION_REQUESTS_TOTAL",
    "LINK_CREATION_DURATION",
    "SHORT_CODE_COLLISIONS_TOTAL",
    "RESOLVE_REQUESTS_TOTAL",
    "RESOLVE_DURATION",
    "CACHE_HITS_TOTAL",
    "CACHE_MISSES_TOTAL",
    "CACHE_DEGRADATIONS_TOTAL",
    "DATABASE_READS_TOTAL",
    "DATABASE_WRITES_TOTAL",
    "CLICK_EVENTS_TOTAL",
]

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortener_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_CREATION_DURATION = Histogram(
    "shortener_creation_duration_seconds",
    "Time taken to create short links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
SHORT_CODE_COLLISIONS_TOTAL = Counter(
    "shortener_short_code_collisions_total",
    "Generated short code candidates that were already taken",
)

RESOLVE_REQUESTS_TOTAL = Counter(
    "shortener_resolve_requests_total",
    "Total short code resolutions",
    ["status", "cache_hit"],
)
RESOLVE_DURATION = Histogram(
    "shortener_resolve_duration_seconds",
    "Time taken to resolve short codes",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)

CACHE_HITS_TOTAL = Counter(
    "shortener_cache_hits_total",
    "Resolution cache hits",
)
CACHE_MISSES_TOTAL = Counter(
    "shortener_cache_misses_total",
    "Resolution cache misses",
)
CACHE_DEGRADATIONS_TOTAL = Counter(
    "shortener_cache_degradations_total",
    "Cache calls that failed or returned a corrupted payload",
    ["operation"],
)

DATABASE_READS_TOTAL = Counter(
    "shortener_database_reads_total",
    "Total database read operations",
)
DATABASE_WRITES_TOTAL = Counter(
    "shortener_database_writes_total",
    "Total database write operations",
)

CLICK_EVENTS_TOTAL = Counter(
    "shortener_click_events_total",
    "Click events by recorder outcome",
    ["outcome"],
)
