"""Word generation using the Anthropic Messages API."""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import anthropic
from anthropic import AsyncAnthropic

from wordgarden import monitoring
from wordgarden.config import GenerationSettings, settings
from wordgarden.errors import ConfigurationError, ModelOutputError, UpstreamError
from wordgarden.services.cache import ResponseCache, cache_key
from wordgarden.services.store_client import StoreClient

logger = logging.getLogger(__name__)

LEVEL_DESCRIPTIONS = {
    1: "easy (A1-A2 kid-friendly)",
    2: "intermediate (B1-ish for a motivated 10-year-old)",
    3: "advanced (B2-ish, still kid-appropriate)",
}
REQUIRED_FIELDS = ("word", "definition", "swedish", "sentence")
CODE_FENCE = re.compile(r"```json|```")


def normalize_existing(existing_words: Sequence[Any], limit: Optional[int] = None) -> List[str]:
    """Trimmed, lower-cased, non-empty words, truncated to the limit."""
    limit = settings.generation.existing_words_limit if limit is None else limit
    cleaned = [str(word if word is not None else "").strip().lower() for word in existing_words]
    return [word for word in cleaned if word][:limit]


def build_prompt(level: int, existing_words: Sequence[str], count: Optional[int] = None) -> str:
    count = count or settings.generation.words_per_request
    return (
        f"Generate {count} English vocabulary words at {LEVEL_DESCRIPTIONS[level]}. "
        f"Avoid these words: {', '.join(existing_words)}.\n"
        "Return ONLY valid JSON array (no markdown). Each item must be:\n"
        f'{{"word":"...","definition":"(max 12 words)","swedish":"...","sentence":"The ___ ...","level":{level}}}\n'
        "Make sure the sentence uses ___ as placeholder exactly once."
    )


def _entry_level(value: Any, default: int) -> int:
    try:
        level = int(value)
    except (TypeError, ValueError):
        return default
    return level if level in LEVEL_DESCRIPTIONS else default


def parse_model_output(text: str, level: int, raw_limit: Optional[int] = None) -> Tuple[List[Dict[str, Any]], int]:
    """
    Turn the model's reply into word rows ready for upserting.

    Returns the valid rows and the number of discarded entries. Raises
    ModelOutputError when the reply is not a JSON array.
    """
    raw_limit = raw_limit or settings.generation.raw_output_limit
    cleaned = CODE_FENCE.sub("", str(text)).strip()
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        raise ModelOutputError("Model returned non-JSON", raw=cleaned[:raw_limit])
    if not isinstance(parsed, list):
        raise ModelOutputError("Unexpected model output", raw=cleaned[:raw_limit])

    rows = []
    for entry in parsed:
        if not isinstance(entry, dict):
            continue
        row = {name: str(entry.get(name) or "").strip() for name in REQUIRED_FIELDS}
        if not all(row.values()):
            continue
        row["level"] = _entry_level(entry.get("level"), level)
        row["source"] = "ai"
        rows.append(row)
    return rows, len(parsed) - len(rows)


class WordGenerator:
    """Generates new words for a level and saves them to the store.

    Identical requests within the cache TTL are answered from the response
    cache without calling the model again.
    """

    def __init__(
        self,
        store: StoreClient,
        llm_client: Optional[AsyncAnthropic] = None,
        cache: Optional[ResponseCache] = None,
        generation_settings: Optional[GenerationSettings] = None,
    ):
        self.store = store
        self.settings = generation_settings or settings.generation
        self.cache = cache or ResponseCache(ttl=self.settings.cache_ttl)
        self._llm = llm_client
        self._owns_llm = llm_client is None

    def ensure_configured(self) -> None:
        if self._llm is None and not self.settings.api_key:
            raise ConfigurationError("Missing ANTHROPIC_API_KEY env var")

    def _client(self) -> AsyncAnthropic:
        self.ensure_configured()
        if self._llm is None:
            self._llm = AsyncAnthropic(api_key=self.settings.api_key)
        return self._llm

    def request_key(self, level: int, existing_words: Sequence[str]) -> str:
        return cache_key({"level": level, "existingWords": list(existing_words), "promptVersion": self.settings.prompt_version})

    async def generate(self, level: int, existing_words: Sequence[Any]) -> List[Dict[str, Any]]:
        """Generate words for a level, skipping the given ones, and upsert them."""
        safe_existing = normalize_existing(existing_words, self.settings.existing_words_limit)
        key = self.request_key(level, safe_existing)
        cached = self.cache.get(key)
        if cached is not None:
            monitoring.cache_hits.labels(cache="generation").inc()
            logger.info(f"Serving generated words for level {level} from cache")
            return cached

        prompt = build_prompt(level, safe_existing, self.settings.words_per_request)
        text = await self._complete(prompt)
        rows, discarded = parse_model_output(text, level, self.settings.raw_output_limit)
        if discarded:
            monitoring.words_discarded.inc(discarded)
            logger.warning(f"Discarded {discarded} malformed entries from model output")

        if not rows:
            logger.warning(f"Model returned no usable words for level {level}")
            return []

        saved = await self.store.upsert_words(rows)
        monitoring.words_generated.inc(len(saved))
        self.cache.set(key, saved)
        logger.info(f"Generated and saved {len(saved)} words for level {level}")
        return saved

    async def _complete(self, prompt: str) -> str:
        client = self._client()
        try:
            message = await client.messages.create(
                model=self.settings.model,
                max_tokens=self.settings.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as e:
            monitoring.upstream_errors.labels(upstream="anthropic").inc()
            logger.error(f"Anthropic returned {e.status_code}: {e}")
            raise UpstreamError("Anthropic error", detail=e.body if e.body is not None else str(e)) from e
        except anthropic.APIError as e:
            monitoring.upstream_errors.labels(upstream="anthropic").inc()
            logger.error(f"Anthropic request failed: {e}")
            raise UpstreamError("Anthropic error", detail=str(e)) from e

        return "".join(getattr(block, "text", "") or "" for block in message.content)

    async def aclose(self) -> None:
        if self._llm is not None and self._owns_llm:
            await self._llm.close()
            self._llm = None
