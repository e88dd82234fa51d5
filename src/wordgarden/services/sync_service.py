"""
Progress sync between the local repository and the remote store.

Local progress is always saved first. Remote writes are debounced: every
save re-arms a short timer and only the last record is sent. A sync that
fires while another is still in flight is skipped, not queued; the next
save arms a new one. When loading, the remote copy wins only if its
timestamp is strictly newer than the local one.
"""
import asyncio
import logging
from datetime import UTC, datetime
from typing import Any, Dict, Optional

from wordgarden import monitoring
from wordgarden.config import SyncSettings, settings
from wordgarden.errors import ApiError
from wordgarden.models.progress_models import Progress
from wordgarden.services import progress_tracker as tracker
from wordgarden.services.api_client import WordGardenApi
from wordgarden.services.progress_repository import ProgressRepository, stamp

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp ('Z' suffix allowed); None when missing or invalid."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def remote_is_newer(remote_at: Any, local_at: Any) -> bool:
    remote_time = parse_timestamp(remote_at)
    if remote_time is None:
        return False
    local_time = parse_timestamp(local_at)
    return local_time is None or remote_time > local_time


class SyncService:
    """Keeps one learner's progress in sync with the API."""

    def __init__(
        self,
        api: WordGardenApi,
        repository: ProgressRepository,
        sync_settings: Optional[SyncSettings] = None,
    ):
        self.api = api
        self.repository = repository
        self.settings = sync_settings or settings.sync
        self.last_remote_at: Optional[str] = None
        self._pending: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    async def load(self, profile_code: str) -> Progress:
        """Local progress first, replaced by the remote copy when that is newer."""
        local = self.repository.get(profile_code)
        progress = Progress.from_dict(local) if local else tracker.fresh_progress()

        try:
            remote = await self.api.sync_get(profile_code)
        except ApiError as e:
            monitoring.sync_operations.labels(outcome="load_failed").inc()
            logger.warning(f"Could not fetch remote progress for {profile_code}: {e}")
            return progress

        if not isinstance(remote, dict) or not remote.get("found"):
            return progress

        remote_progress = remote.get("progress")
        remote_at = remote.get("updated_at")
        if isinstance(remote_progress, dict) and remote_is_newer(remote_at, progress.updated_at):
            stored = self.repository.put(profile_code, remote_progress)
            progress = Progress.from_dict(stored)
            monitoring.sync_operations.labels(outcome="pulled").inc()
            logger.info(f"Adopted remote progress for {profile_code} from {remote_at}")
        self.last_remote_at = remote_at
        return progress

    def save(self, profile_code: str, progress: Progress) -> Dict[str, Any]:
        """Persist locally and schedule a remote sync."""
        stored = self.repository.put(profile_code, progress.to_dict())
        self.schedule_sync(profile_code, progress)
        return stored

    def schedule_sync(self, profile_code: str, progress: Progress) -> None:
        """(Re)arm the debounce timer for this record."""
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, remote sync for {profile_code} not scheduled")
            return
        self._pending = loop.create_task(self._sync_later(profile_code, progress.to_dict()))

    async def _sync_later(self, profile_code: str, record: Dict[str, Any]) -> None:
        await asyncio.sleep(self.settings.debounce_seconds)
        if self._busy:
            await self.push(profile_code, record)
            return
        # Own task, so re-arming the timer never aborts an upload
        self._inflight = asyncio.get_running_loop().create_task(self.push(profile_code, record))

    async def push(self, profile_code: str, record: Dict[str, Any]) -> bool:
        """Send a record to the remote store; False when skipped or failed."""
        if self._busy:
            monitoring.sync_operations.labels(outcome="skipped").inc()
            logger.debug(f"Sync for {profile_code} skipped, another one is in flight")
            return False

        self._busy = True
        try:
            stamped = stamp(record)
            self.repository.put(profile_code, stamped)
            await self.api.sync_set(profile_code, stamped)
            monitoring.sync_operations.labels(outcome="pushed").inc()
            return True
        except ApiError as e:
            monitoring.sync_operations.labels(outcome="push_failed").inc()
            logger.warning(f"Could not sync progress for {profile_code}: {e}")
            return False
        finally:
            self._busy = False

    def cancel(self) -> None:
        """Drop the pending timer; a push already in flight keeps running."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def flush(self) -> None:
        """Wait for the pending timer and any push it started."""
        pending = self._pending
        if pending is not None:
            try:
                await pending
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
            if self._pending is pending:
                self._pending = None
        inflight = self._inflight
        if inflight is not None:
            await inflight
            if self._inflight is inflight:
                self._inflight = None
