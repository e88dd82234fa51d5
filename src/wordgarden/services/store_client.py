"""Client for the hosted relational store behind a PostgREST API."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from wordgarden import monitoring
from wordgarden.config import StoreSettings, settings
from wordgarden.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

WORD_COLUMNS = "id,word,level,definition,swedish,sentence,source,created_at"
PROFILE_COLUMNS = "profile_code,child_name,created_at"
SYNC_COLUMNS = "sync_code,progress,updated_at"
MERGE_DUPLICATES = "resolution=merge-duplicates,return=representation"


class StoreClient:
    """Reads and upserts rows of the ``words``, ``profiles`` and ``progress_sync`` tables."""

    def __init__(self, store_settings: Optional[StoreSettings] = None, http_client: Optional[httpx.AsyncClient] = None):
        """Initialize the client; an ``httpx.AsyncClient`` is created lazily unless given."""
        self.settings = store_settings or settings.store
        self._http = http_client
        self._owns_http = http_client is None

    def _require_config(self) -> None:
        if not self.settings.configured:
            raise ConfigurationError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.settings.timeout)
        return self._http

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        key = self.settings.service_role_key
        headers = {"apikey": key, "Authorization": f"Bearer {key}"}
        if prefer:
            headers["Content-Type"] = "application/json"
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
        error_message: str = "Supabase error",
    ) -> Any:
        self._require_config()
        url = f"{self.settings.url}/rest/v1/{table}"
        try:
            response = await self._client().request(
                method, url, params=params, json=payload, headers=self._headers(prefer)
            )
        except httpx.HTTPError as e:
            monitoring.upstream_errors.labels(upstream="store").inc()
            logger.error(f"Store request {method} {table} failed: {e}")
            raise UpstreamError("Supabase request failed", detail=str(e)) from e

        try:
            data = response.json()
        except ValueError:
            data = response.text

        if response.is_error:
            monitoring.upstream_errors.labels(upstream="store").inc()
            logger.error(f"Store request {method} {table} returned {response.status_code}: {str(data)[:500]}")
            raise UpstreamError(error_message, detail=data)
        return data

    async def list_words(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Newest words first."""
        data = await self._request("GET", "words", params={
            "select": WORD_COLUMNS,
            "order": "created_at.desc",
            "limit": limit or self.settings.word_list_limit,
        })
        return data if isinstance(data, list) else []

    async def upsert_words(self, words: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert words, merging duplicates on the table's natural key."""
        data = await self._request(
            "POST", "words", payload=words, prefer=MERGE_DUPLICATES, error_message="Supabase upsert error"
        )
        logger.info(f"Upserted {len(words)} words")
        return data if isinstance(data, list) else []

    async def list_profiles(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        data = await self._request("GET", "profiles", params={
            "select": PROFILE_COLUMNS,
            "order": "created_at.desc",
            "limit": limit or self.settings.profile_list_limit,
        })
        return data if isinstance(data, list) else []

    async def get_profile(self, profile_code: str) -> Optional[Dict[str, Any]]:
        data = await self._request("GET", "profiles", params={
            "select": PROFILE_COLUMNS,
            "profile_code": f"eq.{profile_code}",
            "limit": 1,
        })
        if isinstance(data, list) and data:
            return data[0]
        return None

    async def create_profile(self, profile_code: str, child_name: str) -> Dict[str, Any]:
        data = await self._request(
            "POST",
            "profiles",
            params={"on_conflict": "profile_code"},
            payload=[{"profile_code": profile_code, "child_name": child_name}],
            prefer=MERGE_DUPLICATES,
            error_message="Supabase upsert error",
        )
        logger.info(f"Created profile {profile_code}")
        if isinstance(data, list) and data:
            return data[0]
        return {"profile_code": profile_code, "child_name": child_name}

    async def get_progress(self, sync_code: str) -> Optional[Dict[str, Any]]:
        """Stored sync row (``progress`` and ``updated_at``) or None."""
        data = await self._request("GET", "progress_sync", params={
            "select": SYNC_COLUMNS,
            "sync_code": f"eq.{sync_code}",
            "limit": 1,
        })
        if isinstance(data, list) and data:
            return data[0]
        return None

    async def set_progress(self, sync_code: str, progress: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = await self._request(
            "POST",
            "progress_sync",
            params={"on_conflict": "sync_code"},
            payload=[{"sync_code": sync_code, "progress": progress}],
            prefer=MERGE_DUPLICATES,
            error_message="Supabase upsert error",
        )
        return data if isinstance(data, list) else []

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None
