"""API discovery caching.

Submodules:
    cache    -- DiscoveryCache: lazily populated, wholesale-invalidated cache.
    fetch    -- KubernetesDiscovery: fetchers for the cache (kubernetes_asyncio).
    watcher  -- CRDWatcher: invalidates the cache on CRD lifecycle events.
"""

from chartinspector.discovery.cache import CacheState, DiscoveryCache
from chartinspector.discovery.watcher import CRDWatcher

__all__ = ["CRDWatcher", "CacheState", "DiscoveryCache"]
