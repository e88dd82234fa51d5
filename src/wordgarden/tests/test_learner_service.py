"""Tests for the learner service."""
import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from wordgarden.config import SyncSettings
from wordgarden.errors import ApiError, SessionStateError
from wordgarden.models.progress_models import PlacementRecord
from wordgarden.models.session_models import Phase
from wordgarden.services import progress_tracker as tracker
from wordgarden.services.learner_service import LearnerService, create_learner_service, random_profile_code
from wordgarden.services.progress_repository import InMemoryProgressRepository, SqlProgressRepository
from wordgarden.services.sync_service import SyncService
from wordgarden.tests.factories import stat

CODE = "WG-ABCDEFGH"


@pytest.fixture
def api(word_list):
    api = MagicMock()
    api.list_words = AsyncMock(return_value=[word.to_dict() for word in word_list])
    api.sync_get = AsyncMock(return_value={"found": False})
    api.sync_set = AsyncMock(return_value={"ok": True, "updated": True})
    api.generate_words = AsyncMock(return_value=[{"word": "bloom", "level": 1, "definition": "grow"}])
    api.profile_list = AsyncMock(return_value=[{"profile_code": "MISHA-2026", "child_name": "Misha"}])
    api.profile_get = AsyncMock(return_value={"found": True, "childName": "Misha"})
    api.profile_create = AsyncMock(side_effect=lambda code, name, password: {
        "ok": True,
        "profile": {"profile_code": code, "child_name": name},
    })
    api.aclose = AsyncMock()
    return api


@pytest.fixture
def repository() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture
def service(api, repository, rng) -> LearnerService:
    sync = SyncService(api, repository, SyncSettings(debounce_seconds=0.01))
    return LearnerService(api, repository, sync=sync, rng=rng)


def answer_all(session):
    while not session.is_done:
        if session.phase is Phase.INTRO:
            session.ready()
        session.answer(session.question.answer)
        if session.phase is Phase.REVIEW:
            session.next()


@pytest.mark.asyncio
async def test_open_profile(service, repository, word_list):
    """Test that opening a profile loads words and counts today's visit."""
    progress = await service.open_profile(f" {CODE} ", "Anna")

    assert service.profile_code == CODE
    assert repository.get_active_profile() == {"profileCode": CODE, "childName": "Anna"}
    assert len(service.words) == len(word_list)
    assert progress.streak == 1
    assert progress.last_date == tracker.today_utc().isoformat()
    assert repository.get(CODE)["streak"] == 1
    await service.aclose()


@pytest.mark.asyncio
async def test_open_profile_short_code(service):
    with pytest.raises(ValueError):
        await service.open_profile("abc")


@pytest.mark.asyncio
async def test_open_profile_without_words(service, api):
    api.list_words.side_effect = ApiError("Failed to load words")

    progress = await service.open_profile(CODE)

    assert service.words == []
    assert progress.streak == 1
    await service.aclose()


@pytest.mark.asyncio
async def test_resume_and_sign_out(service, repository):
    assert await service.resume() is None

    repository.set_active_profile(CODE, "Anna")
    await service.resume()
    assert service.profile_code == CODE

    await service.sign_out()
    assert service.profile is None
    assert repository.get_active_profile() is None
    assert service.progress.streak == 0


def test_sessions_need_a_profile(service):
    with pytest.raises(SessionStateError):
        service.start_learning()


@pytest.mark.asyncio
async def test_learning_answers_are_saved_and_synced(service, api, repository):
    """Test that each answer is persisted and the last state is synced."""
    await service.open_profile(CODE)
    session = service.start_learning()

    answer_all(session)
    await service.sync.flush()

    assert service.progress.accuracy.total == len(session.items)
    assert repository.get(CODE)["accuracy"]["total"] == len(session.items)
    sent = api.sync_set.await_args.args[1]
    assert sent["accuracy"]["total"] == len(session.items)


@pytest.mark.asyncio
async def test_daily_and_weak_sessions(service):
    await service.open_profile(CODE)

    daily = service.start_daily()
    answer_all(daily)
    assert tracker.daily_record(service.progress).done
    assert service.start_daily().summary().already_completed

    assert service.start_weak_drill().items == []
    await service.aclose()


@pytest.mark.asyncio
async def test_placement_flow(service):
    await service.open_profile(CODE)
    test = service.start_placement()

    with pytest.raises(SessionStateError):
        service.finish_placement(test)

    answer_all(test)
    result = service.finish_placement(test)

    assert result.level == 3
    assert service.progress.current_level == 3
    assert service.progress.placement_done
    await service.aclose()


@pytest.mark.asyncio
async def test_skip_placement_and_reset(service):
    await service.open_profile(CODE)

    assert service.skip_placement().placement_done
    progress = service.reset_progress()

    assert not progress.placement_done
    assert progress.streak == 0
    await service.aclose()


@pytest.mark.asyncio
async def test_summaries(service, word_list):
    """Test home, progress and parent figures."""
    await service.open_profile(CODE, "Anna")
    progress = service.progress.copy()
    progress.word_stats = {
        word_list[0].key: stat(correct=4, mastered=True, last_seen_at=2),
        word_list[1].key: stat(correct=1, wrong=3, last_seen_at=3),
    }
    progress.placement_history = [PlacementRecord(date=f"2025-06-{day:02d}", score=day, level=1) for day in range(1, 8)]
    service.progress = progress

    home = service.home_summary()
    assert home.child_name == "Anna"
    assert home.level_name == "Beginner"
    assert home.mastered == 1
    assert home.total_words == len(word_list)
    assert home.mastered_percent == 3

    details = service.progress_summary()
    assert details.levels[1] == {"total": 10, "mastered": 1}
    assert [row.word for row in details.recent_words] == [word_list[1], word_list[0]]
    assert [record.date for record in details.placement_history] == [
        "2025-06-07", "2025-06-06", "2025-06-05", "2025-06-04", "2025-06-03",
    ]

    parent = service.parent_summary()
    assert parent.profile_code == CODE
    assert parent.weak == 1
    assert parent.mastered == 1
    await service.aclose()


@pytest.mark.asyncio
async def test_generate_words(service, api, word_list):
    await service.open_profile(CODE)

    generated = await service.generate_words("secret")

    assert [word.word for word in generated] == ["bloom"]
    level, existing, password = api.generate_words.await_args.args
    assert level == 1
    assert existing == [word.word for word in word_list]
    assert password == "secret"
    assert api.list_words.await_count == 2
    await service.aclose()


@pytest.mark.asyncio
async def test_profiles(service, api):
    assert await service.list_profiles("secret") == [{"profile_code": "MISHA-2026", "child_name": "Misha"}]

    created = await service.create_profile("secret", " Anna ")
    assert created["child_name"] == "Anna"
    assert created["profile_code"].startswith("WG-")

    with pytest.raises(ValueError):
        await service.create_profile("secret", "Anna", "abc")


@pytest.mark.asyncio
async def test_lookup_profile(service, api):
    assert await service.lookup_profile(" MISHA-2026 ") == {"profileCode": "MISHA-2026", "childName": "Misha"}

    api.profile_get.return_value = {"found": False}
    assert await service.lookup_profile("NOPE-1") is None

    api.profile_get.reset_mock()
    assert await service.lookup_profile("ab") is None
    api.profile_get.assert_not_awaited()


def test_random_profile_code():
    codes = {random_profile_code() for _ in range(20)}

    assert all(re.fullmatch(r"WG-[A-Z0-9]{8}", code) for code in codes)
    assert len(codes) > 1
    assert re.fullmatch(r"WG-[A-Z0-9]{8}", LearnerService.random_profile_code())


@pytest.mark.asyncio
async def test_create_learner_service():
    service = create_learner_service()

    assert isinstance(service.repository, SqlProgressRepository)
    service.repository.put(CODE, {"streak": 2})
    assert service.repository.get(CODE)["streak"] == 2
    await service.aclose()
