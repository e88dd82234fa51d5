"""Tests for progress tracking rules."""
from datetime import timedelta

import pytest

from wordgarden.models.progress_models import Accuracy, DailyRecord, Progress
from wordgarden.services import progress_tracker as tracker
from wordgarden.tests.factories import DAY_MS, NOW, TODAY, stat


def test_compute_accuracy():
    """Test accuracy percentage rounding."""
    assert tracker.compute_accuracy(Accuracy(correct=0, total=0)) == 0
    assert tracker.compute_accuracy(Accuracy(correct=3, total=4)) == 75
    assert tracker.compute_accuracy(Accuracy(correct=1, total=8)) == 13  # 12.5 rounds up
    assert tracker.compute_accuracy(Accuracy(correct=2, total=3)) == 67


@pytest.mark.parametrize(
    "correct, days",
    [(0, 1), (1, 1), (2, 2), (3, 2), (4, 7), (5, 7), (6, 14), (20, 14)],
)
def test_schedule_next_review(correct, days):
    """Test the review ladder."""
    assert tracker.schedule_next_review(correct, NOW) == NOW + days * DAY_MS


def test_record_answer_updates_totals_and_stat(make_word, progress):
    """Test that an answer updates accuracy and the word stat."""
    word = make_word()
    updated = tracker.record_answer(progress, word, True, NOW)

    assert updated.accuracy == Accuracy(correct=1, total=1)
    word_stat = updated.word_stats[word.key]
    assert (word_stat.seen, word_stat.correct, word_stat.wrong) == (1, 1, 0)
    assert word_stat.last_seen_at == NOW
    assert word_stat.next_review_at == NOW + DAY_MS
    assert not word_stat.mastered

    # Input is left untouched
    assert progress.word_stats == {}
    assert progress.accuracy.total == 0


def test_record_answer_wrong(make_word, progress):
    word = make_word()
    updated = tracker.record_answer(progress, word, False, NOW)

    assert updated.accuracy == Accuracy(correct=0, total=1)
    assert updated.word_stats[word.key].wrong == 1


def test_mastery_reached(make_word):
    """Test mastery at four correct answers with 80% accuracy."""
    word = make_word()
    progress = Progress(word_stats={word.key: stat(correct=3, wrong=0)})

    updated = tracker.record_answer(progress, word, True, NOW)

    assert updated.word_stats[word.key].mastered


def test_mastery_needs_ratio(make_word):
    word = make_word()
    progress = Progress(word_stats={word.key: stat(correct=3, wrong=2)})

    updated = tracker.record_answer(progress, word, True, NOW)

    # 4 correct of 6 is below 80%
    assert not updated.word_stats[word.key].mastered


def test_mastery_is_permanent(make_word):
    """Test that wrong answers never revoke mastery."""
    word = make_word()
    progress = Progress(word_stats={word.key: stat(correct=4, mastered=True)})

    for _ in range(10):
        progress = tracker.record_answer(progress, word, False, NOW)
        assert progress.word_stats[word.key].mastered


def test_get_due_review_words(make_word):
    """Test due review selection."""
    due = make_word()
    later = make_word()
    mastered = make_word()
    unseen = make_word()
    progress = Progress(word_stats={
        due.key: stat(correct=1, next_review_at=NOW - 1),
        later.key: stat(correct=1, next_review_at=NOW + DAY_MS),
        mastered.key: stat(correct=5, mastered=True, next_review_at=NOW - 1),
    })

    result = tracker.get_due_review_words([due, later, mastered, unseen], progress, NOW)

    assert result == [due]


def test_get_due_review_words_boundary(make_word):
    word = make_word()
    progress = Progress(word_stats={word.key: stat(correct=1, next_review_at=NOW)})

    assert tracker.get_due_review_words([word], progress, NOW) == [word]


def test_get_unseen_words(make_word):
    seen = make_word(level=1)
    fresh = make_word(level=1)
    other_level = make_word(level=2)
    progress = Progress(word_stats={seen.key: stat(correct=1)})

    assert tracker.get_unseen_words([seen, fresh, other_level], progress, 1) == [fresh]


def test_weak_words_both_clauses(make_word):
    """Test a word that is weak by both accuracy and wrong count."""
    word = make_word()
    progress = Progress(word_stats={word.key: stat(correct=1, wrong=3)})

    assert tracker.get_weak_words([word], progress) == [word]


def test_weak_words_accuracy_clause_only(make_word):
    """Test a word weak only by its low accuracy."""
    word = make_word()
    # wrong=1 fails the repeated-wrong clause
    low = Progress(word_stats={word.key: stat(correct=1, wrong=1)})

    # 1/2 = 50% < 60% with two attempts
    assert tracker.get_weak_words([word], low) == [word]


def test_weak_words_wrong_clause_only(make_word):
    """Test a word weak only by repeated wrong answers."""
    word = make_word()
    # 8/10 = 80% fails the accuracy clause
    progress = Progress(word_stats={word.key: stat(correct=8, wrong=2)})

    assert tracker.get_weak_words([word], progress) == [word]


def test_weak_words_excludes_mastered_with_good_accuracy(make_word):
    word = make_word()
    progress = Progress(word_stats={word.key: stat(correct=8, wrong=2, mastered=True)})

    assert tracker.get_weak_words([word], progress) == []


def test_weak_words_excludes_single_wrong(make_word):
    word = make_word()
    progress = Progress(word_stats={word.key: stat(wrong=1)})

    assert tracker.get_weak_words([word], progress) == []


def _mastered_progress(words, accuracy=Accuracy(correct=10, total=10)):
    return Progress(
        word_stats={word.key: stat(correct=4, mastered=True) for word in words},
        accuracy=Accuracy(correct=accuracy.correct, total=accuracy.total),
    )


def test_should_level_up_needs_ten_attempted(make_word):
    """Test that nine attempted words block level up even when everything else passes."""
    level_words = [make_word(level=1) for _ in range(9)]
    progress = _mastered_progress(level_words)

    assert not tracker.should_level_up(level_words, progress)


def test_should_level_up_at_ten_attempted(make_word):
    level_words = [make_word(level=1) for _ in range(10)]
    progress = _mastered_progress(level_words)

    assert tracker.should_level_up(level_words, progress)


def test_should_level_up_needs_accuracy(make_word):
    level_words = [make_word(level=1) for _ in range(10)]
    progress = _mastered_progress(level_words, Accuracy(correct=6, total=10))

    assert not tracker.should_level_up(level_words, progress)


def test_should_level_up_needs_mastered_fraction(make_word):
    level_words = [make_word(level=1) for _ in range(10)]
    progress = _mastered_progress(level_words)
    for word in level_words[:4]:
        progress.word_stats[word.key].mastered = False

    # 6/10 mastered is below 70%
    assert not tracker.should_level_up(level_words, progress)


def test_should_level_up_at_max_level(make_word):
    level_words = [make_word(level=3) for _ in range(10)]
    progress = _mastered_progress(level_words)
    progress.current_level = 3

    assert not tracker.should_level_up(level_words, progress)


def test_should_level_up_without_words():
    assert not tracker.should_level_up([], Progress())


def test_level_up_clamps():
    assert tracker.level_up(Progress(current_level=1)).current_level == 2
    assert tracker.level_up(Progress(current_level=3)).current_level == 3


def test_update_streak_continues_from_yesterday():
    """Test that a visit the day after extends the streak."""
    progress = Progress(streak=4, last_date=(TODAY - timedelta(days=1)).isoformat())

    updated = tracker.update_streak(progress, TODAY)

    assert updated.streak == 5
    assert updated.last_date == TODAY.isoformat()


def test_update_streak_resets_after_gap():
    """Test that a missed day restarts the streak at one."""
    progress = Progress(streak=4, last_date=(TODAY - timedelta(days=3)).isoformat())

    assert tracker.update_streak(progress, TODAY).streak == 1


def test_update_streak_first_visit():
    assert tracker.update_streak(Progress(), TODAY).streak == 1


def test_update_streak_same_day_is_noop():
    progress = Progress(streak=2, last_date=TODAY.isoformat())

    assert tracker.update_streak(progress, TODAY) is progress


def test_daily_records():
    progress = tracker.record_daily_answer(Progress(), True, TODAY)
    progress = tracker.record_daily_answer(progress, False, TODAY)

    assert tracker.daily_record(progress, TODAY) == DailyRecord(done=False, correct=1, total=2)

    progress = tracker.complete_daily(progress, TODAY)
    assert tracker.daily_record(progress, TODAY).done
    assert not tracker.daily_record(progress, TODAY + timedelta(days=1)).done


def test_apply_placement():
    """Test that placement sets the level and appends history."""
    progress = tracker.apply_placement(Progress(), 2, 7, TODAY)

    assert progress.placement_done
    assert progress.current_level == 2
    assert progress.placement_history[-1].to_dict() == {"date": TODAY.isoformat(), "score": 7, "level": 2}


def test_apply_placement_clamps_level():
    assert tracker.apply_placement(Progress(), 5, 10, TODAY).current_level == 3
    assert tracker.apply_placement(Progress(), 0, 0, TODAY).current_level == 1


def test_skip_placement():
    progress = tracker.skip_placement(Progress(current_level=3))

    assert progress.placement_done
    assert progress.current_level == 1


def test_level_name():
    assert tracker.level_name(1) == "Beginner"
    assert tracker.level_name(2) == "Intermediate"
    assert tracker.level_name(3) == "Advanced"
    assert tracker.level_name(7) == "Beginner"


def test_level_breakdown(make_word):
    words = [make_word(level=1), make_word(level=1), make_word(level=2)]
    progress = Progress(word_stats={words[0].key: stat(correct=4, mastered=True)})

    breakdown = tracker.level_breakdown(words, progress)

    assert breakdown[1] == {"total": 2, "mastered": 1}
    assert breakdown[2] == {"total": 1, "mastered": 0}
    assert breakdown[3] == {"total": 0, "mastered": 0}


@pytest.mark.parametrize(
    "correct, wrong, band",
    [(1, 0, "red"), (4, 1, "green"), (3, 2, "yellow"), (1, 3, "red")],
)
def test_confidence(correct, wrong, band):
    assert tracker.confidence(stat(correct=correct, wrong=wrong)) == band


def test_recent_word_rows(make_word):
    """Test that rows are ordered by last seen and limited."""
    words = [make_word() for _ in range(5)]
    progress = Progress(word_stats={
        word.key: stat(correct=1, last_seen_at=NOW + index) for index, word in enumerate(words[:4])
    })

    rows = tracker.recent_word_rows(words, progress, limit=3)

    assert [row.word for row in rows] == [words[3], words[2], words[1]]
    assert rows[0].correct == 1
    assert rows[0].attempted == 1
    assert rows[0].confidence == "red"


def test_mastered_count(make_word):
    words = [make_word(), make_word()]
    progress = Progress(word_stats={
        words[0].key: stat(correct=4, mastered=True),
        words[1].key: stat(correct=1),
    })

    assert tracker.mastered_count(progress) == 1
