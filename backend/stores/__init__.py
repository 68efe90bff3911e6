from .registry import get_stores, reload_stores, load_stores, StoreSet

__all__ = [
    "get_stores",
    "reload_stores",
    "load_stores",
    "StoreSet",
]
