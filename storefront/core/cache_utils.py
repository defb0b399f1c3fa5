"""
Caching utilities for public storefront payloads.

Keys carry a per-namespace version number. Bumping the version makes every
key of that namespace unreachable at once, which works on any cache backend
(Redis in production, local memory in development and tests).
"""
from django.conf import settings
from django.core.cache import cache
from functools import wraps
import hashlib
import logging
import time

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
BANNERS_CACHE_TTL = getattr(settings, 'MERCHANDISING_CACHE_TTL', 120)
HOMEPAGE_SECTIONS_CACHE_TTL = getattr(settings, 'MERCHANDISING_CACHE_TTL', 120)

VERSION_KEY_PREFIX = 'cache_version'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def fresh_version():
    """Start value for a namespace whose version key is missing"""
    # Millisecond clock, above any version an evicted key reached
    return int(time.time() * 1000)


def get_cache_version(namespace):
    key = f"{VERSION_KEY_PREFIX}:{namespace}"
    version = cache.get(key)
    if version is None:
        version = fresh_version()
        if not cache.add(key, version, None):
            # Another process set it first
            version = cache.get(key, version)
    return version


def bump_cache_version(namespace):
    """Invalidate every cached entry of a namespace"""
    key = f"{VERSION_KEY_PREFIX}:{namespace}"
    try:
        version = cache.incr(key)
    except ValueError:
        # Key missing (evicted or never set)
        version = fresh_version()
        cache.set(key, version, None)
    logger.debug(f"Cache namespace {namespace} bumped to version {version}")
    return version


def versioned_cache_key(namespace, *args, **kwargs):
    version = get_cache_version(namespace)
    return make_cache_key(f"{namespace}:v{version}", *args, **kwargs)


def cached_payload(namespace, cache_ttl=60):
    """
    Decorator caching the return value of a payload builder under a
    versioned key built from its arguments.

    Usage:
        @cached_payload('merchandising', cache_ttl=120)
        def build_active_banners():
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = versioned_cache_key(namespace, func.__name__, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {namespace}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {namespace}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator
