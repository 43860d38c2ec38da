from .cache import CachePort

__all__ = [
    "CachePort",
]
