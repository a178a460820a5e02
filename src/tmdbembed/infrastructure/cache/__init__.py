"""Cache infrastructure - lookup cache backend."""

from .diskcache_adapter import DiskcacheAdapter

__all__ = ["DiskcacheAdapter"]
