"""Pure progress-tracking rules: mastery, review scheduling, streaks, levels.

Nothing in this module performs I/O. Functions that change a record return
a new ``Progress`` and leave their input untouched; the caller decides when
to persist it. ``now`` is epoch milliseconds and ``today`` a UTC date, both
defaulting to the current time.
"""
import math
import time
from datetime import UTC, date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from wordgarden.config import LEVELS, settings
from wordgarden.models.progress_models import (
    Accuracy,
    DailyRecord,
    PlacementRecord,
    Progress,
    Word,
    WordRow,
    WordStat,
)

DAY_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def today_utc() -> date:
    return datetime.now(UTC).date()


def fresh_progress() -> Progress:
    """Progress of a learner who has not answered anything yet."""
    return Progress()


def compute_accuracy(acc: Accuracy) -> int:
    """Percentage of correct answers, rounded half up; 0 with no answers."""
    if not acc.total:
        return 0
    return int(math.floor(100 * acc.correct / acc.total + 0.5))


def overall_accuracy(progress: Progress) -> float:
    acc = progress.accuracy
    return acc.correct / acc.total if acc.total else 0.0


def mastered_count(progress: Progress) -> int:
    return sum(1 for stat in progress.word_stats.values() if stat.mastered)


def level_name(level: int) -> str:
    return LEVELS.get(level, LEVELS[1])


def schedule_next_review(correct: int, now: Optional[int] = None) -> int:
    """Next review time for a word with the given number of correct answers.

    Wrong answers never shorten the interval; they only delay mastery.
    """
    now = now_ms() if now is None else now
    days = settings.learning.default_review_days
    for min_correct, interval in settings.learning.review_ladder:
        if correct >= min_correct:
            days = interval
            break
    return now + days * DAY_MS


def _reaches_mastery(stat: WordStat) -> bool:
    return (
        stat.correct >= settings.learning.mastery_min_correct
        and stat.ratio >= settings.learning.mastery_min_ratio
    )


def record_answer(progress: Progress, word: Word, correct: bool, now: Optional[int] = None) -> Progress:
    """Apply one answer to the learner's totals and to the word's stat."""
    now = now_ms() if now is None else now
    updated = progress.copy()

    updated.accuracy.total += 1
    if correct:
        updated.accuracy.correct += 1

    stat = updated.word_stats.get(word.key) or WordStat()
    stat.seen += 1
    if correct:
        stat.correct += 1
    else:
        stat.wrong += 1
    # Mastery is never revoked once reached
    stat.mastered = stat.mastered or _reaches_mastery(stat)
    stat.next_review_at = schedule_next_review(stat.correct, now)
    stat.last_seen_at = now
    updated.word_stats[word.key] = stat
    return updated


def get_due_review_words(words: Iterable[Word], progress: Progress, now: Optional[int] = None) -> List[Word]:
    """Seen, non-mastered words whose review time has passed."""
    now = now_ms() if now is None else now
    due = []
    for word in words:
        stat = progress.stat_for(word)
        if stat and not stat.mastered and stat.next_review_at and stat.next_review_at <= now:
            due.append(word)
    return due


def get_unseen_words(words: Iterable[Word], progress: Progress, level: int) -> List[Word]:
    return [word for word in words if word.level == level and word.key not in progress.word_stats]


def get_weak_words(words: Iterable[Word], progress: Progress) -> List[Word]:
    """Words answered badly: low accuracy, or repeatedly wrong and not mastered."""
    learning = settings.learning
    weak = []
    for word in words:
        stat = progress.stat_for(word)
        if not stat:
            continue
        if stat.attempted >= learning.weak_min_attempts and stat.ratio < learning.weak_max_ratio:
            weak.append(word)
        elif stat.wrong >= learning.weak_min_wrong and not stat.mastered:
            weak.append(word)
    return weak


def should_level_up(words: Iterable[Word], progress: Progress) -> bool:
    """Check the three level-up gates for the learner's current level."""
    learning = settings.learning
    level = progress.current_level or 1
    if level >= learning.max_level:
        return False

    level_words = [word for word in words if word.level == level]
    if not level_words:
        return False

    mastered = attempted = 0
    for word in level_words:
        stat = progress.stat_for(word)
        if not stat:
            continue
        attempted += 1
        if stat.mastered:
            mastered += 1

    return (
        mastered / len(level_words) >= learning.level_up_mastered_ratio
        and overall_accuracy(progress) >= learning.level_up_accuracy
        and attempted >= learning.level_up_min_attempted
    )


def level_up(progress: Progress) -> Progress:
    updated = progress.copy()
    updated.current_level = min(max(updated.current_level + 1, 1), settings.learning.max_level)
    return updated


def update_streak(progress: Progress, today: Optional[date] = None) -> Progress:
    """Count today towards the streak; a missed day restarts it at 1."""
    today = today or today_utc()
    today_str = today.isoformat()
    if progress.last_date == today_str:
        return progress

    updated = progress.copy()
    yesterday = (today - timedelta(days=1)).isoformat()
    updated.streak = progress.streak + 1 if progress.last_date == yesterday else 1
    updated.last_date = today_str
    return updated


def daily_record(progress: Progress, today: Optional[date] = None) -> DailyRecord:
    today = today or today_utc()
    return progress.daily.get(today.isoformat()) or DailyRecord()


def record_daily_answer(progress: Progress, correct: bool, today: Optional[date] = None) -> Progress:
    today = today or today_utc()
    updated = progress.copy()
    record = updated.daily.get(today.isoformat()) or DailyRecord()
    record.total += 1
    if correct:
        record.correct += 1
    updated.daily[today.isoformat()] = record
    return updated


def complete_daily(progress: Progress, today: Optional[date] = None) -> Progress:
    today = today or today_utc()
    updated = progress.copy()
    record = updated.daily.get(today.isoformat()) or DailyRecord()
    record.done = True
    updated.daily[today.isoformat()] = record
    return updated


def apply_placement(progress: Progress, level: int, score: int, today: Optional[date] = None) -> Progress:
    """Store a placement result and move the learner to the placed level."""
    today = today or today_utc()
    updated = progress.copy()
    updated.placement_done = True
    updated.current_level = min(max(level, 1), settings.learning.max_level)
    updated.placement_history.append(PlacementRecord(date=today.isoformat(), score=score, level=level))
    return updated


def skip_placement(progress: Progress) -> Progress:
    updated = progress.copy()
    updated.placement_done = True
    updated.current_level = 1
    return updated


def level_breakdown(words: Iterable[Word], progress: Progress) -> Dict[int, Dict[str, int]]:
    """Total and mastered word counts per level."""
    breakdown = {level: {"total": 0, "mastered": 0} for level in LEVELS}
    for word in words:
        counts = breakdown.setdefault(word.level or 1, {"total": 0, "mastered": 0})
        counts["total"] += 1
        stat = progress.stat_for(word)
        if stat and stat.mastered:
            counts["mastered"] += 1
    return breakdown


def confidence(stat: WordStat) -> str:
    if stat.attempted < 2:
        return "red"
    if stat.ratio >= 0.8:
        return "green"
    if stat.ratio >= 0.5:
        return "yellow"
    return "red"


def recent_word_rows(words: Iterable[Word], progress: Progress, limit: Optional[int] = None) -> List[WordRow]:
    """Most recently seen words with their score and confidence."""
    limit = settings.learning.recent_words_limit if limit is None else limit
    rows = []
    for word in words:
        stat = progress.stat_for(word)
        if not stat:
            continue
        rows.append(WordRow(
            word=word,
            correct=stat.correct,
            attempted=stat.attempted,
            confidence=confidence(stat),
            last_seen_at=stat.last_seen_at,
        ))
    rows.sort(key=lambda row: row.last_seen_at, reverse=True)
    return rows[:limit]
