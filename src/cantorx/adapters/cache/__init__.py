"""
Cache Adapters

Short-TTL hot cache of the latest quotes and the live update bus.
"""

from cantorx.adapters.cache.hot_cache import HotCache, Subscription

__all__ = ["HotCache", "Subscription"]
