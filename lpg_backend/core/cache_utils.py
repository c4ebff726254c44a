"""
Caching utilities for per-tenant lists and dashboard aggregates
Uses Redis (django-redis) in production, any Django cache backend in tests
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
PRODUCTS_LIST_CACHE_TTL = 180  # 3 minutes
DASHBOARD_KPI_CACHE_TTL = 300  # 5 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes

# Cache key prefixes
PRODUCTS_LIST_PREFIX = 'products_list'
DASHBOARD_PREFIX = 'dashboard_kpis'
DAILY_SALES_PREFIX = 'daily_sales_report'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def tenant_cache_key(prefix, tenant_id, *args, **kwargs):
    """Tenant scoped key; the plain form is used when there are no extra arguments"""
    if not args and not kwargs:
        return f"{prefix}:{tenant_id}"
    return make_cache_key(f"{prefix}:{tenant_id}", *args, **kwargs)


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="dashboard_kpis")
        def build_dashboard(tenant_id):
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Note: This requires Redis with SCAN command support
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")

        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        # Non-redis backends (locmem in tests) have no SCAN
        logger.debug(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def invalidate_tenant_cache(prefix, tenant_id):
    """Drop the plain tenant key and every hashed variant for that tenant"""
    cache.delete(tenant_cache_key(prefix, tenant_id))
    invalidate_cache_pattern(f"{prefix}:{tenant_id}:")
    bump_cache_generation(prefix, tenant_id)


def cache_generation(prefix, tenant_id):
    """Current generation of a tenant's hashed keys; bumping it orphans every older key"""
    return cache.get(f"{prefix}_generation:{tenant_id}", 0)


def bump_cache_generation(prefix, tenant_id):
    key = f"{prefix}_generation:{tenant_id}"
    if not cache.add(key, 1, None):
        cache.incr(key)
