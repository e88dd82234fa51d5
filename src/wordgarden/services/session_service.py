"""Learning activities: word sampling, quiz building and the per-word state machine."""
import logging
import random
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from wordgarden import monitoring
from wordgarden.config import settings
from wordgarden.errors import SessionStateError
from wordgarden.models.progress_models import BLANK, Progress, Word, WordStat
from wordgarden.models.session_models import (
    AnswerFeedback,
    Phase,
    PlacementAnswer,
    PlacementResult,
    QuizQuestion,
    QuizType,
    SessionEvent,
    SessionKind,
    SessionSummary,
    WordCard,
)
from wordgarden.services import progress_tracker as tracker

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUIZ_ROTATION = [QuizType.DEFINITION, QuizType.SWEDISH, QuizType.FILL_BLANK, QuizType.SPELLING]

ProgressCallback = Callable[[Progress], None]


def sample(items: Sequence[T], count: int, rng: random.Random) -> List[T]:
    """Pick up to ``count`` items without replacement."""
    return rng.sample(list(items), min(count, len(items)))


def shuffled(items: Sequence[T], rng: random.Random) -> List[T]:
    result = list(items)
    rng.shuffle(result)
    return result


def _item_start(has_next: bool, skip_intro: bool) -> Phase:
    if not has_next:
        return Phase.DONE
    return Phase.QUIZ if skip_intro else Phase.INTRO


def next_phase(
    phase: Phase,
    event: SessionEvent,
    has_next: bool,
    skip_intro: bool = False,
    skip_review: bool = False,
) -> Phase:
    """Transition function of the per-word state machine.

    ``has_next`` tells whether another word follows the current one; it only
    matters when the event leaves the current word.
    """
    if phase is Phase.INTRO and event is SessionEvent.READY:
        return Phase.QUIZ
    if phase is Phase.QUIZ and event is SessionEvent.ANSWERED:
        if not skip_review:
            return Phase.REVIEW
        return _item_start(has_next, skip_intro)
    if phase is Phase.REVIEW and event is SessionEvent.NEXT:
        return _item_start(has_next, skip_intro)
    raise SessionStateError(f"Cannot handle '{event.value}' in phase '{phase.value}'")


def score_placement(answers: Sequence[PlacementAnswer]) -> PlacementResult:
    """Place the learner at the highest level answered well enough.

    A level counts only if at least one question was asked at it; level 1
    is the floor even when nothing was answered correctly.
    """
    scores: Dict[int, Dict[str, int]] = {}
    for answer in answers:
        counts = scores.setdefault(answer.level, {"correct": 0, "total": 0})
        counts["total"] += 1
        if answer.correct:
            counts["correct"] += 1

    level = 1
    for candidate in sorted(scores):
        counts = scores[candidate]
        if counts["total"] and counts["correct"] / counts["total"] >= settings.learning.placement_pass_ratio:
            level = candidate
    correct = sum(1 for answer in answers if answer.correct)
    return PlacementResult(level=level, score=correct, asked=len(answers))


class QuizBuilder:
    """Builds questions with distractors drawn from the whole word list."""

    def __init__(self, words: Sequence[Word], rng: random.Random):
        self.words = list(words)
        self.rng = rng

    @staticmethod
    def quiz_type_for(stat: Optional[WordStat]) -> QuizType:
        """Rotate question shapes by how many times the word was seen."""
        seen = stat.seen if stat else 0
        return QUIZ_ROTATION[seen % len(QUIZ_ROTATION)]

    def _choices(self, answer: str, candidates: List[str]) -> List[str]:
        # Distinct distractors that differ from the answer
        pool = [value for value in dict.fromkeys(candidates) if value and value != answer]
        wrongs = sample(pool, settings.learning.distractors, self.rng)
        return shuffled([answer, *wrongs], self.rng)

    def _other_words(self, word: Word) -> List[Word]:
        return [other for other in self.words if other.word != word.word]

    def build(self, word: Word, quiz_type: QuizType) -> QuizQuestion:
        # Fall back to the definition question when the word lacks the needed field
        if quiz_type is QuizType.SWEDISH and not word.swedish:
            quiz_type = QuizType.DEFINITION
        if quiz_type is QuizType.FILL_BLANK and BLANK not in word.sentence:
            quiz_type = QuizType.DEFINITION
        if quiz_type is QuizType.SPELLING and not word.definition:
            quiz_type = QuizType.DEFINITION

        others = self._other_words(word)
        if quiz_type is QuizType.DEFINITION:
            return QuizQuestion(
                quiz_type=quiz_type,
                word_key=word.key,
                prompt=word.word,
                answer=word.definition,
                level=word.level,
                choices=self._choices(word.definition, [w.definition for w in others if w.definition]),
            )
        if quiz_type is QuizType.SWEDISH:
            prompt = word.swedish
        elif quiz_type is QuizType.FILL_BLANK:
            prompt = word.sentence
        elif quiz_type is QuizType.SPELLING:
            return QuizQuestion(
                quiz_type=quiz_type,
                word_key=word.key,
                prompt=word.definition,
                answer=word.word,
                level=word.level,
                expects_text=True,
            )
        else:
            raise ValueError(f"Unsupported quiz type: {quiz_type}")
        return QuizQuestion(
            quiz_type=quiz_type,
            word_key=word.key,
            prompt=prompt,
            answer=word.word,
            level=word.level,
            choices=self._choices(word.word, [w.word for w in others]),
        )

    def placement_question(self, word: Word, level: int) -> QuizQuestion:
        """'Which word matches this definition?' with words as choices."""
        pool = [other.word for other in self.words if other.definition and other.word and other.word != word.word]
        return QuizQuestion(
            quiz_type=QuizType.PLACEMENT,
            word_key=word.key,
            prompt=word.definition,
            answer=word.word,
            level=level,
            choices=self._choices(word.word, pool),
        )


class BaseSession(ABC):
    """A bounded sequence of words driven through intro, quiz and review.

    Every answer produces a new ``Progress`` which is handed to
    ``on_progress`` so the caller can persist it.
    """

    kind: SessionKind
    skip_intro: bool = False
    skip_review: bool = False

    def __init__(
        self,
        words: Sequence[Word],
        progress: Progress,
        rng: Optional[random.Random] = None,
        on_progress: Optional[ProgressCallback] = None,
        clock: Callable[[], int] = tracker.now_ms,
        today: Optional[date] = None,
    ):
        self.words = list(words)
        self.progress = progress
        self.rng = rng or random.Random()
        self.on_progress = on_progress
        self.clock = clock
        self.today = today or tracker.today_utc()
        self.quiz_builder = QuizBuilder(self.words, self.rng)

        self.index = 0
        self.answered = 0
        self.correct = 0
        self.question: Optional[QuizQuestion] = None
        self.feedback: Optional[AnswerFeedback] = None

        self.items: List[Word] = self.build_items()
        self.phase = _item_start(bool(self.items), self.skip_intro)
        if self.phase is Phase.QUIZ:
            self._prepare_question()
        logger.info(f"Started {self.kind.value} session with {len(self.items)} words")

    @abstractmethod
    def build_items(self) -> List[Word]:
        """Sample the words of this session."""
        raise NotImplementedError("Subclasses must implement this method")

    def build_question(self, word: Word) -> QuizQuestion:
        return self.quiz_builder.build(word, QuizBuilder.quiz_type_for(self.progress.stat_for(word)))

    def record(self, word: Word, correct: bool) -> None:
        """Apply an answer to the learner's progress."""
        self.progress = tracker.record_answer(self.progress, word, correct, self.clock())

    def on_complete(self) -> None:
        """Called once when the last word has been handled."""

    @property
    def is_done(self) -> bool:
        return self.phase is Phase.DONE

    @property
    def current_word(self) -> Optional[Word]:
        if self.index < len(self.items):
            return self.items[self.index]
        return None

    def card(self) -> Optional[WordCard]:
        word = self.current_word
        if word is None:
            return None
        return WordCard.for_word(word, is_new=word.key not in self.progress.word_stats)

    def ready(self) -> QuizQuestion:
        """Leave the intro card and show the question."""
        self._transition(SessionEvent.READY)
        return self.question

    def answer(self, response: str) -> AnswerFeedback:
        """Check the response, update progress and move on."""
        if self.phase is not Phase.QUIZ or self.question is None:
            raise SessionStateError(f"No question to answer in phase '{self.phase.value}'")

        word = self.current_word
        correct = self.question.check(response)
        card = WordCard.for_word(word, is_new=word.key not in self.progress.word_stats)
        self.record(word, correct)
        self.answered += 1
        if correct:
            self.correct += 1
        monitoring.answers_recorded.labels(session=self.kind.value, correct=str(correct).lower()).inc()

        self.feedback = AnswerFeedback(correct=correct, expected=self.question.answer, card=card)
        self._transition(SessionEvent.ANSWERED)
        self._notify()
        return self.feedback

    def next(self) -> Phase:
        """Dismiss the review card."""
        self._transition(SessionEvent.NEXT)
        self._notify()
        return self.phase

    def _transition(self, event: SessionEvent) -> None:
        has_next = self.index + 1 < len(self.items)
        new_phase = next_phase(self.phase, event, has_next, self.skip_intro, self.skip_review)
        leaving_word = event is SessionEvent.NEXT or (event is SessionEvent.ANSWERED and self.skip_review)
        if leaving_word:
            self.index += 1
        if event is SessionEvent.NEXT:
            self.feedback = None
        self.phase = new_phase
        if new_phase is Phase.QUIZ:
            self._prepare_question()
        elif new_phase is Phase.DONE and leaving_word:
            self.question = None
            self.on_complete()
            logger.info(f"Finished {self.kind.value} session: {self.correct}/{self.answered} correct")

    def _prepare_question(self) -> None:
        self.question = self.build_question(self.current_word)

    def _notify(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self.progress)

    def summary(self) -> SessionSummary:
        return SessionSummary(
            kind=self.kind,
            total=len(self.items),
            answered=self.answered,
            correct=self.correct,
            completed=self.is_done and bool(self.items),
            current_level=self.progress.current_level,
        )


class LearningSession(BaseSession):
    """New words at the learner's level mixed with due reviews."""

    kind = SessionKind.LEARNING

    def __init__(self, *args, **kwargs):
        self.level_changed = False
        super().__init__(*args, **kwargs)

    def build_items(self) -> List[Word]:
        learning = settings.learning
        level = self.progress.current_level or 1
        unseen = tracker.get_unseen_words(self.words, self.progress, level)
        due = tracker.get_due_review_words(self.words, self.progress, self.clock())
        pool = sample(unseen, learning.learning_new_words, self.rng) + sample(due, learning.learning_review_words, self.rng)
        items = shuffled(pool, self.rng)[:learning.learning_session_size]
        if not items:
            # Never leave the learner on an empty screen
            level_words = [word for word in self.words if word.level == level]
            items = sample(level_words, learning.learning_fallback_words, self.rng)
        return items

    def record(self, word: Word, correct: bool) -> None:
        super().record(word, correct)
        if tracker.should_level_up(self.words, self.progress):
            self.progress = tracker.level_up(self.progress)
            self.level_changed = True
            logger.info(f"Level up to {self.progress.current_level}")

    def summary(self) -> SessionSummary:
        summary = super().summary()
        summary.level_changed = self.level_changed
        return summary


class DailyChallengeSession(BaseSession):
    """Five words a day; once done, reopening only shows the summary."""

    kind = SessionKind.DAILY

    def __init__(self, *args, **kwargs):
        self.already_completed = False
        super().__init__(*args, **kwargs)

    def build_items(self) -> List[Word]:
        if tracker.daily_record(self.progress, self.today).done:
            self.already_completed = True
            return []
        learning = settings.learning
        level = self.progress.current_level or 1
        due = tracker.get_due_review_words(self.words, self.progress, self.clock())
        unseen = tracker.get_unseen_words(self.words, self.progress, level)
        pool = sample(due, learning.daily_review_words, self.rng) + sample(unseen, learning.daily_new_words, self.rng)
        return shuffled(pool, self.rng)[:learning.daily_session_size]

    def record(self, word: Word, correct: bool) -> None:
        super().record(word, correct)
        self.progress = tracker.record_daily_answer(self.progress, correct, self.today)
        if self.index == len(self.items) - 1:
            self.progress = tracker.complete_daily(self.progress, self.today)

    def summary(self) -> SessionSummary:
        summary = super().summary()
        summary.completed = self.already_completed or summary.completed
        summary.already_completed = self.already_completed
        summary.daily = tracker.daily_record(self.progress, self.today)
        return summary


class WeakWordDrill(BaseSession):
    """Direct quizzing on words the learner keeps getting wrong."""

    kind = SessionKind.WEAK
    skip_intro = True

    def build_items(self) -> List[Word]:
        weak = tracker.get_weak_words(self.words, self.progress)
        return shuffled(weak, self.rng)[:settings.learning.weak_drill_size]


class PlacementTest(BaseSession):
    """Short diagnostic across all levels that sets the starting level.

    Answers are scored per level and never touch word statistics.
    """

    kind = SessionKind.PLACEMENT
    skip_intro = True
    skip_review = True

    def __init__(self, *args, **kwargs):
        self.levels: List[int] = []
        self.answers: List[PlacementAnswer] = []
        self.result: Optional[PlacementResult] = None
        super().__init__(*args, **kwargs)

    def build_items(self) -> List[Word]:
        items: List[Word] = []
        for level, count in sorted(settings.learning.placement_words_per_level.items()):
            level_words = [word for word in self.words if word.level == level]
            for word in sample(level_words, count, self.rng):
                if word.definition:
                    items.append(word)
                    self.levels.append(level)
        return items

    def build_question(self, word: Word) -> QuizQuestion:
        return self.quiz_builder.placement_question(word, self.levels[self.index])

    def record(self, word: Word, correct: bool) -> None:
        self.answers.append(PlacementAnswer(level=self.levels[self.index], correct=correct))

    def on_complete(self) -> None:
        self.result = score_placement(self.answers)
        self.progress = tracker.apply_placement(self.progress, self.result.level, self.result.score, self.today)
        logger.info(f"Placement finished at level {self.result.level} with score {self.result.score}")

    def summary(self) -> SessionSummary:
        summary = super().summary()
        summary.placement = self.result
        return summary
