"""Read-only access to the shared word list."""
import logging
from typing import Any, Dict, List, Optional

from wordgarden import monitoring
from wordgarden.config import settings
from wordgarden.services.cache import ResponseCache
from wordgarden.services.store_client import StoreClient

logger = logging.getLogger(__name__)

WORD_LIST_KEY = "words"


class WordStore:
    """Serves the word list from the backing store, cached briefly."""

    def __init__(self, store: StoreClient, cache: Optional[ResponseCache] = None):
        self.store = store
        self.cache = cache or ResponseCache(ttl=settings.store.word_list_cache_ttl)

    async def list_words(self) -> List[Dict[str, Any]]:
        cached = self.cache.get(WORD_LIST_KEY)
        if cached is not None:
            monitoring.cache_hits.labels(cache="word_list").inc()
            return cached

        words = await self.store.list_words()
        self.cache.set(WORD_LIST_KEY, words)
        logger.info(f"Loaded {len(words)} words from the store")
        return words

    def invalidate(self) -> None:
        """Forget the cached list, e.g. after new words were upserted."""
        self.cache.clear()
