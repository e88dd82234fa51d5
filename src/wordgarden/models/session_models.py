"""Models for session-related data structures."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from wordgarden.models.progress_models import DailyRecord, Word


class Phase(Enum):
    """Phases of the per-word session state machine."""
    INTRO = "intro"  # Word card shown before testing
    QUIZ = "quiz"  # Question waiting for an answer
    REVIEW = "review"  # Feedback and full card after answering
    DONE = "done"  # No more words in the session


class SessionEvent(Enum):
    """Inputs accepted by the session state machine."""
    READY = "ready"  # Learner finished reading the intro card
    ANSWERED = "answered"  # Learner answered the current question
    NEXT = "next"  # Learner dismissed the review card


class QuizType(Enum):
    """Question shapes, rotated by how often a word was seen."""
    DEFINITION = "definition"  # Pick the definition of a word
    SWEDISH = "swedish"  # Pick the English word for a Swedish translation
    FILL_BLANK = "fill_blank"  # Pick the word that completes a sentence
    SPELLING = "spelling"  # Type the word for a definition
    PLACEMENT = "placement"  # Pick the word matching a definition


class SessionKind(Enum):
    """Activities a learner can start."""
    LEARNING = "learning"
    DAILY = "daily"
    WEAK = "weak"
    PLACEMENT = "placement"


@dataclass
class WordCard:
    """Everything shown about a word on intro and review screens."""
    word: str
    level: int
    definition: str
    swedish: str
    example: str
    is_new: bool = False

    @classmethod
    def for_word(cls, word: Word, is_new: bool = False) -> "WordCard":
        return cls(
            word=word.word,
            level=word.level,
            definition=word.definition,
            swedish=word.swedish,
            example=word.example,
            is_new=is_new,
        )


@dataclass
class QuizQuestion:
    """A question about one word."""
    quiz_type: QuizType
    word_key: str
    prompt: str
    answer: str
    level: int
    choices: List[str] = field(default_factory=list)
    expects_text: bool = False

    def check(self, response: str) -> bool:
        """Return True if the response answers the question."""
        if self.expects_text:
            return str(response or "").strip().lower() == self.answer.strip().lower()
        return response == self.answer


@dataclass
class AnswerFeedback:
    """Result of answering a question."""
    correct: bool
    expected: str
    card: WordCard


@dataclass
class PlacementAnswer:
    """One placement test answer."""
    level: int
    correct: bool


@dataclass
class PlacementResult:
    """Final placement test outcome."""
    level: int
    score: int
    asked: int


@dataclass
class SessionSummary:
    """Numbers shown when a session ends."""
    kind: SessionKind
    total: int
    answered: int
    correct: int
    completed: bool
    current_level: int
    level_changed: bool = False
    already_completed: bool = False
    daily: Optional[DailyRecord] = None
    placement: Optional[PlacementResult] = None
