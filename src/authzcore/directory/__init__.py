"""Directory access: contract, HTTP adapter and response cache."""

from .base import DirectoryClient
from .cache import CacheKeys, DirectoryCache, make_cache_key
from .client import HttpDirectoryClient

__all__ = [
    "CacheKeys",
    "DirectoryCache",
    "DirectoryClient",
    "HttpDirectoryClient",
    "make_cache_key",
]
