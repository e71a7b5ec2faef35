"""
Cache package for the Catalog Service.

Provides in-process, per-query-shape namespaces with size and
write/access expiry bounds, plus the key derivation used by the service.
"""

from .namespace_cache import CachePolicy, NamespaceCache
from .manager import CacheManager

__all__ = ["CachePolicy", "NamespaceCache", "CacheManager"]
