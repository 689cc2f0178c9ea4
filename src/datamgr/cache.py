"""
Caching for catalog metadata.

Uses cachetools TTLCache for automatic expiration. Entries are keyed by
driver instance and table name, so two live drivers never share results;
the registry clears everything whenever the active driver changes.
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)


class MetadataCache:
    """Process-wide home of the catalog caches, one TTLCache per metadata method.

    The registry holds at most one driver, so a single instance is shared by
    everything and emptied on every connect and disconnect.
    """

    _instance: 'MetadataCache | None' = None
    _lock = threading.RLock()

    def __init__(self) -> None:
        self._caches: dict[str, cachetools.TTLCache] = {}

    @classmethod
    def get_instance(cls) -> 'MetadataCache':
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def get_cache(self, name: str, maxsize: int = 100, ttl: int = 300) -> cachetools.TTLCache:
        """The cache behind one metadata method, created on first use.

        `maxsize` and `ttl` only apply when the cache is created.
        """
        with self._lock:
            if name not in self._caches:
                self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
            return self._caches[name]

    def clear_all(self) -> None:
        """Drop every cached catalog result."""
        with self._lock:
            for name, cache in self._caches.items():
                if cache:
                    logger.debug(f'Clearing {len(cache)} cached {name} entries')
                cache.clear()


def cacheable_driver(cache_name: str, ttl: int = 300, maxsize: int = 50):
    """Decorator for caching driver metadata methods.

    The wrapped method takes `(self, table)`; results are cached per driver
    instance and table. Pass `bypass_cache=True` to force a catalog
    round-trip (the fresh result still refreshes the cache).

    Args:
        cache_name: Base name for the cache
        ttl: Time-to-live in seconds
        maxsize: Maximum cache size
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, table, bypass_cache=False):
            cache = MetadataCache.get_instance().get_cache(cache_name, ttl=ttl, maxsize=maxsize)
            key = (id(self), table)

            if not bypass_cache and key in cache:
                logger.debug(f'Cache hit for {method.__name__}({table})')
                return list(cache[key])

            logger.debug(f'Cache miss for {method.__name__}({table})')
            result = method(self, table)
            cache[key] = tuple(result)
            return list(result)

        return wrapper
    return decorator
