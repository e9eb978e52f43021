"""
Request-scoped memoization.

One RequestCache is built per inbound request by the dependency layer and
dropped with it; nothing survives across requests, so structure edits made
between requests are always visible.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


class RequestCache:
    """Memoizes async loaders by (namespace, key)"""

    def __init__(self):
        self._store: Dict[Tuple[str, Hashable], Any] = {}
        self.hits = 0
        self.misses = 0

    async def get_or_load(
            self,
            namespace: str,
            key: Hashable,
            loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value for (namespace, key), awaiting loader() once.

        Args:
            namespace: Value family, e.g. "course_modules"
            key: Identifier within the family
            loader: Coroutine factory producing the value

        Returns:
            Cached or freshly loaded value
        """
        cache_key = (namespace, key)
        if cache_key in self._store:
            self.hits += 1
            logger.debug(f"Request cache hit: {namespace}:{key}")
            return self._store[cache_key]

        self.misses += 1
        value = await loader()
        self._store[cache_key] = value
        return value

    def invalidate(self, namespace: str, key: Optional[Hashable] = None):
        """Drop one entry, or a whole namespace when key is None"""
        if key is not None:
            self._store.pop((namespace, key), None)
            return
        for cache_key in [k for k in self._store if k[0] == namespace]:
            del self._store[cache_key]

    def clear(self):
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
