"""Prometheus metrics for Vault Lease Cache."""

from prometheus_client import (
    Counter, Histogram, generate_latest,
    CONTENT_TYPE_LATEST
)

# Cache metrics
cache_hits_total = Counter(
    'vault_lease_cache_hits_total',
    'Total secret cache hits'
)

cache_misses_total = Counter(
    'vault_lease_cache_misses_total',
    'Total secret cache misses'
)

cache_write_failures_total = Counter(
    'vault_lease_cache_write_failures_total',
    'Total failed secret cache writes'
)

# Vault round-trips
fetches_total = Counter(
    'vault_lease_cache_fetches_total',
    'Total secret reads from Vault',
    ['result']
)

fetch_duration_seconds = Histogram(
    'vault_lease_cache_fetch_duration_seconds',
    'Vault read duration in seconds',
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0]
)

# Refresh metrics
refreshes_total = Counter(
    'vault_lease_cache_refreshes_total',
    'Total scheduled refresh attempts',
    ['outcome']
)

refreshes_scheduled_total = Counter(
    'vault_lease_cache_refreshes_scheduled_total',
    'Total refresh jobs scheduled'
)

stale_locks_recovered_total = Counter(
    'vault_lease_cache_stale_locks_recovered_total',
    'Total refresh locks reclaimed after exceeding the stale threshold'
)

def record_cache_hit():
    """Record a cache hit."""
    cache_hits_total.inc()

def record_cache_miss():
    """Record a cache miss."""
    cache_misses_total.inc()

def record_cache_write_failure():
    """Record a failed cache write."""
    cache_write_failures_total.inc()

def record_fetch(result: str, duration: float):
    """Record a Vault read."""
    fetches_total.labels(result=result).inc()
    fetch_duration_seconds.observe(duration)

def record_refresh(outcome: str):
    """Record the outcome of a scheduled refresh."""
    refreshes_total.labels(outcome=outcome).inc()

def record_refresh_scheduled():
    """Record a scheduled refresh job."""
    refreshes_scheduled_total.inc()

def record_stale_lock_recovered():
    """Record a reclaimed stale lock."""
    stale_locks_recovered_total.inc()

def get_metrics():
    """Get Prometheus metrics."""
    return generate_latest()

def get_metrics_content_type():
    """Get Prometheus metrics content type."""
    return CONTENT_TYPE_LATEST
