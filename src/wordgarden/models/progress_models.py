"""Models for words and per-learner progress.

These mirror the JSON stored on the device and in the ``progress_sync``
table, so every model converts to and from camelCase dictionaries.
"""
import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

BLANK = "___"


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_str(value: Any) -> str:
    return "" if value is None else str(value).strip()


@dataclass(frozen=True)
class Word:
    """A vocabulary entry owned by the backing store."""
    word: str
    level: int = 1
    definition: str = ""
    swedish: str = ""
    sentence: str = ""
    source: str = ""
    id: Optional[Any] = None
    created_at: Optional[str] = None

    @property
    def key(self) -> str:
        """Stable key used in Progress.word_stats."""
        return str(self.id) if self.id is not None else str(self.word)

    @property
    def example(self) -> str:
        """Example sentence with the blank filled in."""
        return self.sentence.replace(BLANK, f'"{self.word}"', 1)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Word":
        return cls(
            word=_to_str(data.get("word")),
            level=_to_int(data.get("level"), 1),
            definition=_to_str(data.get("definition")),
            swedish=_to_str(data.get("swedish")),
            sentence=_to_str(data.get("sentence")),
            source=_to_str(data.get("source")),
            id=data.get("id"),
            created_at=data.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "word": self.word,
            "level": self.level,
            "definition": self.definition,
            "swedish": self.swedish,
            "sentence": self.sentence,
            "source": self.source,
        }
        if self.id is not None:
            data["id"] = self.id
        if self.created_at is not None:
            data["created_at"] = self.created_at
        return data


@dataclass
class WordStat:
    """Answer history for one word."""
    seen: int = 0
    correct: int = 0
    wrong: int = 0
    mastered: bool = False
    next_review_at: int = 0  # epoch ms, 0 when never scheduled
    last_seen_at: int = 0  # epoch ms

    @property
    def attempted(self) -> int:
        return self.correct + self.wrong

    @property
    def ratio(self) -> float:
        return self.correct / self.attempted if self.attempted else 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordStat":
        return cls(
            seen=_to_int(data.get("seen")),
            correct=_to_int(data.get("correct")),
            wrong=_to_int(data.get("wrong")),
            mastered=bool(data.get("mastered", False)),
            next_review_at=_to_int(data.get("nextReviewAt")),
            last_seen_at=_to_int(data.get("lastSeenAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seen": self.seen,
            "correct": self.correct,
            "wrong": self.wrong,
            "mastered": self.mastered,
            "nextReviewAt": self.next_review_at,
            "lastSeenAt": self.last_seen_at,
        }


@dataclass
class Accuracy:
    """Running answer totals across all words."""
    correct: int = 0
    total: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Accuracy":
        data = data or {}
        return cls(correct=_to_int(data.get("correct")), total=_to_int(data.get("total")))

    def to_dict(self) -> Dict[str, Any]:
        return {"correct": self.correct, "total": self.total}


@dataclass
class DailyRecord:
    """Daily challenge result for one calendar day."""
    done: bool = False
    correct: int = 0
    total: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DailyRecord":
        data = data or {}
        return cls(
            done=bool(data.get("done", False)),
            correct=_to_int(data.get("correct")),
            total=_to_int(data.get("total")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"done": self.done, "correct": self.correct, "total": self.total}


@dataclass
class PlacementRecord:
    """One finished placement test."""
    date: str
    score: int
    level: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlacementRecord":
        return cls(
            date=_to_str(data.get("date")),
            score=_to_int(data.get("score")),
            level=_to_int(data.get("level"), 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "score": self.score, "level": self.level}


@dataclass
class Progress:
    """Everything tracked for one learner."""
    word_stats: Dict[str, WordStat] = field(default_factory=dict)
    current_level: int = 1
    streak: int = 0
    last_date: Optional[str] = None  # YYYY-MM-DD
    accuracy: Accuracy = field(default_factory=Accuracy)
    placement_done: bool = False
    placement_history: List[PlacementRecord] = field(default_factory=list)
    daily: Dict[str, DailyRecord] = field(default_factory=dict)
    updated_at: Optional[str] = None  # ISO-8601, set when persisted

    def copy(self) -> "Progress":
        return copy.deepcopy(self)

    def stat_for(self, word: Word) -> Optional[WordStat]:
        return self.word_stats.get(word.key)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Progress":
        data = data or {}
        return cls(
            word_stats={
                str(key): WordStat.from_dict(value or {})
                for key, value in (data.get("wordStats") or {}).items()
            },
            current_level=_to_int(data.get("currentLevel"), 1) or 1,
            streak=_to_int(data.get("streak")),
            last_date=data.get("lastDate"),
            accuracy=Accuracy.from_dict(data.get("accuracy")),
            placement_done=bool(data.get("placementDone", False)),
            placement_history=[PlacementRecord.from_dict(item) for item in data.get("placementHistory") or []],
            daily={str(day): DailyRecord.from_dict(value) for day, value in (data.get("daily") or {}).items()},
            updated_at=data.get("_updatedAt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "wordStats": {key: stat.to_dict() for key, stat in self.word_stats.items()},
            "currentLevel": self.current_level,
            "streak": self.streak,
            "lastDate": self.last_date,
            "accuracy": self.accuracy.to_dict(),
            "placementDone": self.placement_done,
            "placementHistory": [record.to_dict() for record in self.placement_history],
            "daily": {day: record.to_dict() for day, record in self.daily.items()},
        }
        if self.updated_at is not None:
            data["_updatedAt"] = self.updated_at
        return data


@dataclass
class WordRow:
    """One line of the word-by-word progress table."""
    word: Word
    correct: int
    attempted: int
    confidence: str  # "green", "yellow" or "red"
    last_seen_at: int


@dataclass
class HomeSummary:
    """Figures shown on the learner's home screen."""
    child_name: Optional[str]
    current_level: int
    level_name: str
    streak: int
    accuracy: int  # percent
    mastered: int
    total_words: int
    placement_done: bool
    daily_done: bool

    @property
    def mastered_percent(self) -> int:
        return round(100 * self.mastered / self.total_words) if self.total_words else 0


@dataclass
class ProgressSummary:
    """Detailed progress: per-level counts, recent words, placement history."""
    current_level: int
    level_name: str
    streak: int
    accuracy: int
    mastered: int
    total_words: int
    levels: Dict[int, Dict[str, int]]
    recent_words: List[WordRow]
    placement_history: List[PlacementRecord]  # newest first


@dataclass
class ParentSummary:
    """Overview for the parent dashboard."""
    profile_code: Optional[str]
    child_name: Optional[str]
    total_words: int
    mastered: int
    weak: int
    current_level: int
