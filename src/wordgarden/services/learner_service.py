"""Learner-side service tying together words, the active profile and progress."""
import logging
import random
import secrets
import string
from typing import Any, Dict, List, Optional

from wordgarden.config import settings
from wordgarden.errors import ApiError, SessionStateError
from wordgarden.models.base import init_db
from wordgarden.models.progress_models import (
    HomeSummary,
    ParentSummary,
    Progress,
    ProgressSummary,
    Word,
)
from wordgarden.models.session_models import PlacementResult
from wordgarden.services import progress_tracker as tracker
from wordgarden.services.api_client import WordGardenApi
from wordgarden.services.progress_repository import ProgressRepository, SqlProgressRepository
from wordgarden.services.session_service import (
    BaseSession,
    DailyChallengeSession,
    LearningSession,
    PlacementTest,
    WeakWordDrill,
)
from wordgarden.services.sync_service import SyncService

logger = logging.getLogger(__name__)

PROFILE_CODE_PREFIX = "WG-"
PROFILE_CODE_ALPHABET = string.ascii_uppercase + string.digits
PROFILE_CODE_LENGTH = 8
PLACEMENT_HISTORY_SHOWN = 5


def random_profile_code() -> str:
    """New profile code such as ``WG-4K7Q2ZMB``."""
    suffix = "".join(secrets.choice(PROFILE_CODE_ALPHABET) for _ in range(PROFILE_CODE_LENGTH))
    return f"{PROFILE_CODE_PREFIX}{suffix}"


class LearnerService:
    """State of one device: the word list, the open profile and its progress.

    Every change to progress is saved locally and scheduled for sync.
    """

    def __init__(
        self,
        api: WordGardenApi,
        repository: ProgressRepository,
        sync: Optional[SyncService] = None,
        rng: Optional[random.Random] = None,
    ):
        self.api = api
        self.repository = repository
        self.sync = sync or SyncService(api, repository)
        self.rng = rng or random.Random()
        self.words: List[Word] = []
        self.profile: Optional[Dict[str, Any]] = None
        self.progress: Progress = tracker.fresh_progress()

    @property
    def profile_code(self) -> Optional[str]:
        return self.profile.get("profileCode") if self.profile else None

    def _require_profile(self) -> str:
        code = self.profile_code
        if not code:
            raise SessionStateError("No profile is open")
        return code

    def _update(self, progress: Progress) -> None:
        self.progress = progress
        if self.profile_code:
            self.sync.save(self.profile_code, progress)

    async def open_profile(self, profile_code: str, child_name: Optional[str] = None) -> Progress:
        """Make a profile active, load its progress and count today in the streak."""
        code = str(profile_code or "").strip()
        if len(code) < settings.auth.min_profile_code_length:
            raise ValueError("Enter a valid profile code.")

        self.profile = {"profileCode": code, "childName": child_name}
        self.repository.set_active_profile(code, child_name)
        self.progress = await self.sync.load(code)

        try:
            await self.refresh_words()
        except ApiError as e:
            logger.warning(f"Could not load words: {e}")

        updated = tracker.update_streak(self.progress)
        if updated is not self.progress:
            self._update(updated)
        logger.info(f"Opened profile {code} at level {self.progress.current_level}")
        return self.progress

    async def resume(self) -> Optional[Progress]:
        """Reopen the profile that was active when the app last ran."""
        active = self.repository.get_active_profile()
        if not active or not active.get("profileCode"):
            return None
        return await self.open_profile(active["profileCode"], active.get("childName"))

    async def sign_out(self) -> None:
        await self.sync.flush()
        self.repository.clear_active_profile()
        self.profile = None
        self.progress = tracker.fresh_progress()

    async def refresh_words(self) -> List[Word]:
        rows = await self.api.list_words()
        self.words = [Word.from_dict(row) for row in rows if isinstance(row, dict)]
        return self.words

    def _session(self, session_class: type) -> BaseSession:
        self._require_profile()
        return session_class(self.words, self.progress, rng=self.rng, on_progress=self._update)

    def start_learning(self) -> LearningSession:
        return self._session(LearningSession)

    def start_daily(self) -> DailyChallengeSession:
        return self._session(DailyChallengeSession)

    def start_weak_drill(self) -> WeakWordDrill:
        return self._session(WeakWordDrill)

    def start_placement(self) -> PlacementTest:
        return self._session(PlacementTest)

    def finish_placement(self, test: PlacementTest) -> PlacementResult:
        if not test.is_done or test.result is None:
            raise SessionStateError("Placement test is not finished")
        self._update(test.progress)
        return test.result

    def skip_placement(self) -> Progress:
        self._require_profile()
        self._update(tracker.skip_placement(self.progress))
        return self.progress

    def reset_progress(self) -> Progress:
        """Start this profile over on this device."""
        self._require_profile()
        self._update(tracker.fresh_progress())
        logger.info(f"Progress reset for {self.profile_code}")
        return self.progress

    def home_summary(self) -> HomeSummary:
        progress = self.progress
        return HomeSummary(
            child_name=self.profile.get("childName") if self.profile else None,
            current_level=progress.current_level,
            level_name=tracker.level_name(progress.current_level),
            streak=progress.streak,
            accuracy=tracker.compute_accuracy(progress.accuracy),
            mastered=tracker.mastered_count(progress),
            total_words=len(self.words),
            placement_done=progress.placement_done,
            daily_done=tracker.daily_record(progress).done,
        )

    def progress_summary(self) -> ProgressSummary:
        progress = self.progress
        return ProgressSummary(
            current_level=progress.current_level,
            level_name=tracker.level_name(progress.current_level),
            streak=progress.streak,
            accuracy=tracker.compute_accuracy(progress.accuracy),
            mastered=tracker.mastered_count(progress),
            total_words=len(self.words),
            levels=tracker.level_breakdown(self.words, progress),
            recent_words=tracker.recent_word_rows(self.words, progress),
            placement_history=list(reversed(progress.placement_history[-PLACEMENT_HISTORY_SHOWN:])),
        )

    def parent_summary(self) -> ParentSummary:
        return ParentSummary(
            profile_code=self.profile_code,
            child_name=self.profile.get("childName") if self.profile else None,
            total_words=len(self.words),
            mastered=tracker.mastered_count(self.progress),
            weak=len(tracker.get_weak_words(self.words, self.progress)),
            current_level=self.progress.current_level,
        )

    async def generate_words(self, password: str) -> List[Word]:
        """Ask the server for new words at the current level, then reload the list."""
        existing = [word.word for word in self.words]
        rows = await self.api.generate_words(self.progress.current_level or 1, existing, password)
        logger.info(f"Generated/saved {len(rows)} words")
        await self.refresh_words()
        return [Word.from_dict(row) for row in rows if isinstance(row, dict)]

    async def list_profiles(self, password: str) -> List[Dict[str, Any]]:
        return await self.api.profile_list(password)

    async def create_profile(self, password: str, child_name: str, profile_code: Optional[str] = None) -> Dict[str, Any]:
        name = str(child_name or "").strip()
        code = str(profile_code or random_profile_code()).strip()
        if not name or len(code) < settings.auth.min_profile_code_length:
            raise ValueError("A child name and a profile code of at least 4 characters are required")
        result = await self.api.profile_create(code, name, password)
        logger.info(f"Created profile {code} for {name}")
        return result.get("profile") or {"profile_code": code, "child_name": name}

    async def lookup_profile(self, profile_code: str) -> Optional[Dict[str, Any]]:
        """Profile code and child name when the code exists, else None."""
        code = str(profile_code or "").strip()
        if len(code) < settings.auth.min_profile_code_length:
            return None
        found = await self.api.profile_get(code)
        if not found.get("found"):
            return None
        return {"profileCode": code, "childName": found.get("childName") or "Child"}

    @staticmethod
    def random_profile_code() -> str:
        return random_profile_code()

    async def aclose(self) -> None:
        await self.sync.flush()
        await self.api.aclose()


def create_learner_service() -> LearnerService:
    """Learner service backed by the local database and the configured API."""
    init_db()
    return LearnerService(WordGardenApi(), SqlProgressRepository())
