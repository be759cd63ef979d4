"""
Caching for dashboard and report payloads.

Payloads are keyed by ``<prefix>:<builder name>:<argument hash>`` so that
every builder owns its own slot even when argument lists coincide. Policy,
claim and dealer writes drop both prefixes (see ``agency.reports.signals``).
"""
from django.core.cache import cache
from django.conf import settings
from functools import wraps
import hashlib
import logging

logger = logging.getLogger('agency.core')

DASHBOARD_CACHE_TTL = 300  # 5 minutes
REPORTS_CACHE_TTL = 300  # 5 minutes

DASHBOARD_PREFIX = 'dashboard'
REPORTS_PREFIX = 'reports'


def make_cache_key(prefix, name, *args, **kwargs):
    """Build ``prefix:name:hash`` where the hash covers the call arguments"""
    arguments = repr((tuple(str(arg) for arg in args), sorted((k, str(v)) for k, v in kwargs.items())))
    digest = hashlib.md5(arguments.encode()).hexdigest()
    return f"{prefix}:{name}:{digest}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Cache the return value of a payload builder.

    Usage:
        @cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=DASHBOARD_PREFIX)
        def build_dealer_dashboard(dealer_id, today):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, func.__name__, *args, **kwargs)
            payload = cache.get(cache_key)
            if payload is not None:
                logger.debug(f"Cache hit {cache_key}")
                return payload

            payload = func(*args, **kwargs)
            cache.set(cache_key, payload, cache_ttl)
            logger.debug(f"Cache fill {cache_key} ({cache_ttl}s)")
            return payload
        return wrapper
    return decorator


def _uses_redis():
    return settings.CACHES.get('default', {}).get('BACKEND', '').startswith('django_redis')


def invalidate_cache_pattern(prefix):
    """
    Delete every cached payload under ``prefix``.

    Redis keys are found with SCAN; backends without key listing are cleared.
    """
    if not _uses_redis():
        cache.clear()
        logger.debug(f"Local cache cleared for '{prefix}'")
        return

    from django_redis import get_redis_connection

    try:
        connection = get_redis_connection('default')
        keys = list(connection.scan_iter(match=f"*{prefix}:*", count=100))
        if keys:
            connection.delete(*keys)
        logger.info(f"Dropped {len(keys)} cached '{prefix}' payloads")
    except Exception as e:
        logger.warning(f"Could not drop cached '{prefix}' payloads: {e}")


def invalidate_dashboard_cache():
    """Drop dashboard and report payloads"""
    invalidate_cache_pattern(DASHBOARD_PREFIX)
    invalidate_cache_pattern(REPORTS_PREFIX)
