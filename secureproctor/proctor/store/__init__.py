"""Session persistence backends"""

from typing import Optional

from ..scoring import IntegrityScorer
from .base import SessionStore
from .memory import InMemorySessionStore
from .redis_store import RedisSessionStore

__all__ = ["SessionStore", "InMemorySessionStore", "RedisSessionStore", "build_store"]


def build_store(backend: str = "memory", scorer: Optional[IntegrityScorer] = None, **kwargs) -> SessionStore:
    """
    Create the configured store.

    Args:
        backend: "memory" or "redis"
        scorer: Scoring policy the store applies on every write
        **kwargs: Passed to the Redis store constructor
    """
    if backend == "memory":
        return InMemorySessionStore(scorer=scorer)
    if backend == "redis":
        return RedisSessionStore(scorer=scorer, **kwargs)
    raise ValueError(f"Unknown session store backend: {backend}")
