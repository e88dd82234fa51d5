"""Learner-side client for the Word Garden HTTP API."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from wordgarden.config import ApiSettings, settings
from wordgarden.errors import ApiError

logger = logging.getLogger(__name__)


class WordGardenApi:
    """Thin async wrapper around the ``/api/`` endpoints.

    Non-2xx responses raise ``ApiError`` with the server's ``error`` message.
    """

    def __init__(self, api_settings: Optional[ApiSettings] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = api_settings or settings.api
        self._http = http_client
        self._owns_http = http_client is None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self.settings.base_url, timeout=settings.store.timeout)
        return self._http

    async def _call(self, method: str, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client().request(method, f"/api/{endpoint}", json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"{endpoint} request failed: {e}")
            raise ApiError(f"{endpoint} request failed") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = data.get("error") if isinstance(data, dict) and data.get("error") else f"{endpoint} failed"
            raise ApiError(str(message), status_code=response.status_code)
        return data

    async def list_words(self) -> List[Dict[str, Any]]:
        data = await self._call("GET", "list-words")
        return data if isinstance(data, list) else []

    async def generate_words(self, level: int, existing_words: List[str], password: str) -> List[Dict[str, Any]]:
        data = await self._call(
            "POST",
            "generate-words",
            {"mode": "generate", "level": level, "existingWords": existing_words, "password": password},
        )
        return data if isinstance(data, list) else []

    async def sync_get(self, sync_code: str) -> Dict[str, Any]:
        return await self._call("POST", "sync-get", {"syncCode": sync_code})

    async def sync_set(self, sync_code: str, progress: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("POST", "sync-set", {"syncCode": sync_code, "progress": progress})

    async def profile_list(self, password: str) -> List[Dict[str, Any]]:
        data = await self._call("POST", "profile-list", {"password": password})
        return (data.get("profiles") or []) if isinstance(data, dict) else []

    async def profile_get(self, profile_code: str) -> Dict[str, Any]:
        return await self._call("POST", "profile-get", {"profileCode": profile_code})

    async def profile_create(self, profile_code: str, child_name: str, password: str) -> Dict[str, Any]:
        return await self._call(
            "POST",
            "profile-create",
            {"profileCode": profile_code, "childName": child_name, "password": password},
        )

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None
