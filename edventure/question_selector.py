"""
Question selection: level-appropriate, non-repeating, shuffled exam sets.

Questions the student has not seen in a completed exam ("fresh") are preferred;
among them only the newest 2x window is drawn from. Seen questions pad the set
when the fresh pool is short.
"""
import logging
import random
from typing import List, Optional, Sequence, Set, Tuple, TypeVar

import engine
from edventure.database import DatabaseClient
from edventure.errors import InsufficientQuestions
from edventure.models import ExamMode, ExamQuestion, get_mode_config

logger = logging.getLogger(__name__)

T = TypeVar("T")


def shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Fisher-Yates shuffle into a new list."""
    rng = rng or random.Random()
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def allowed_levels(student_level: str) -> Tuple[str, ...]:
    """Grades a student may draw questions from. Unknown grades map to themselves."""
    return engine.ALLOWED_LEVELS.get(student_level, (student_level,))


def partition_seen(pool: Sequence[ExamQuestion], seen_ids: Set[str]) -> Tuple[List[ExamQuestion], List[ExamQuestion]]:
    fresh = [q for q in pool if q.id not in seen_ids]
    seen = [q for q in pool if q.id in seen_ids]
    return fresh, seen


def pick_questions(
    fresh: Sequence[ExamQuestion],
    seen: Sequence[ExamQuestion],
    required: int,
    rng: Optional[random.Random] = None,
) -> List[ExamQuestion]:
    """
    Pick `required` questions from newest-first fresh and seen pools.

    - enough fresh: shuffle the newest `OVERSAMPLE_FACTOR * required` fresh, take `required`
    - some fresh: all fresh, padded at random from seen
    - no fresh: `required` at random from seen
    """
    if len(fresh) >= required:
        window = list(fresh[: engine.OVERSAMPLE_FACTOR * required])
        return shuffle(window, rng)[:required]
    if fresh:
        needed = required - len(fresh)
        return list(fresh) + shuffle(seen, rng)[:needed]
    return shuffle(seen, rng)[:required]


def _dedupe(questions: Sequence[ExamQuestion]) -> List[ExamQuestion]:
    seen_ids: Set[str] = set()
    unique = []
    for q in questions:
        if q.id not in seen_ids:
            seen_ids.add(q.id)
            unique.append(q)
    return unique


class QuestionSelector:
    """Builds the working question set for one exam."""

    def __init__(self, db: DatabaseClient, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng or random.Random()

    def select(self, student_level: str, subject: str, mode: ExamMode, student_id: str) -> List[ExamQuestion]:
        config = get_mode_config(mode)
        required = config.question_count
        levels = allowed_levels(student_level)
        types = [t.value for t in config.types]

        pool = _dedupe(self.db.fetch_questions(levels, subject, types))
        if len(pool) < required:
            raise InsufficientQuestions(subject, levels, len(pool), required)

        seen_ids: Set[str] = set()
        for question_ids in self.db.fetch_completed_question_ids(student_id, subject):
            seen_ids.update(question_ids)

        fresh, seen = partition_seen(pool, seen_ids)
        logger.info(f"Selecting {required} {subject} questions for {student_id}: {len(fresh)} fresh, {len(seen)} seen")

        selected = pick_questions(fresh, seen, required, self.rng)
        if len(selected) < required:
            raise InsufficientQuestions(subject, levels, len(selected), required)

        return [q.model_copy(update={"user_answer": None, "is_correct": None}) for q in shuffle(selected, self.rng)]
