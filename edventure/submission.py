"""
Exam submission: grade, score, persist (or queue offline), award XP.

Persistence is local-first: without connectivity the exam record goes to the
offline queue and the caller still gets a score. With connectivity the record
is written with retry and linear backoff; only after it is durable is the
student's XP updated. XP and attempt-log failures are logged, never raised.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

import engine
from edventure import config
from edventure.answer_checker import OpenAISemanticChecker, grade_question
from edventure.connectivity import ConnectivityMonitor
from edventure.database import DatabaseClient
from edventure.errors import AuthRequired, PersistenceFailed
from edventure.level_system import check_level_up
from edventure.models import (
    ExamQuestion,
    ExamRecord,
    ExamSummary,
    OfflineExam,
    SubmissionStatus,
    get_mode_config,
)
from edventure.offline_queue import OfflineExamQueue
from edventure.retry import RetryError, linear_backoff, retry_with_backoff
from edventure.scoring import calculate_achievements, calculate_score, calculate_xp_gained

logger = logging.getLogger(__name__)

GRADING_WORKERS = 8


class SubmissionPipeline:
    def __init__(
        self,
        db: DatabaseClient,
        offline_queue: OfflineExamQueue,
        connectivity: ConnectivityMonitor,
        semantic_checker: Optional[OpenAISemanticChecker] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: float = engine.PERSIST_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.offline_queue = offline_queue
        self.connectivity = connectivity
        self.semantic_checker = semantic_checker
        self.max_attempts = max_attempts or config.PERSIST_MAX_ATTEMPTS
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep
        connectivity.on_online(self.sync_offline)

    def grade(self, questions: List[ExamQuestion]) -> List[ExamQuestion]:
        """Grade all questions concurrently; each verdict is independent."""
        if not questions:
            return []

        def _grade(question: ExamQuestion) -> ExamQuestion:
            return question.model_copy(update={"is_correct": grade_question(question, self.semantic_checker)})

        with ThreadPoolExecutor(max_workers=min(GRADING_WORKERS, len(questions))) as pool:
            return list(pool.map(_grade, questions))

    def persist_exam(self, record: ExamRecord) -> None:
        try:
            retry_with_backoff(
                lambda: self.db.insert_exam(record),
                max_attempts=self.max_attempts,
                delay_fn=linear_backoff(self.backoff_seconds),
                sleep=self.sleep,
                label=f"Saving exam {record.id}",
            )
        except RetryError as e:
            logger.error(f"Giving up on exam {record.id} after {e.attempts} attempts: {e.last_error}")
            raise PersistenceFailed(e.last_error, e.attempts) from e.last_error

    def finish(self, session) -> ExamSummary:
        """
        Grade and submit an exam session.

        Raises AuthRequired when no valid credential is held, and
        PersistenceFailed when the record could not be saved.
        """
        student = session.student
        mode_config = get_mode_config(session.selected_mode)
        graded = self.grade(session.questions)
        correct = sum(1 for q in graded if q.is_correct)
        total = len(graded)
        score = calculate_score(correct, total)
        xp_gained = calculate_xp_gained(correct, score)

        if not self.db.has_valid_session():
            raise AuthRequired()

        record = ExamRecord(
            student_id=student.id,
            subject=session.selected_subject,
            mode=session.selected_mode,
            total_questions=total,
            correct_answers=correct,
            score=score,
            time_taken=max(0, mode_config.time_seconds - session.time_left),
            question_ids=[q.id for q in graded],
        )

        if not self.connectivity.is_online():
            self.offline_queue.enqueue(OfflineExam(record=record, xp_gained=xp_gained))
            status = SubmissionStatus.OFFLINE_DEFERRED
            xp_applied = False
            level_up = check_level_up(student.xp, student.xp + xp_gained)
        else:
            self.persist_exam(record)
            status = SubmissionStatus.PERSISTED
            try:
                student.xp = self.db.add_student_xp(student.id, xp_gained)
                xp_applied = True
                level_up = check_level_up(student.xp - xp_gained, student.xp)
            except Exception:
                logger.exception(f"Failed to update XP for student {student.id}; exam {record.id} is saved")
                xp_applied = False
                level_up = None
            self._log_attempts(record.id, graded)

        logger.info(f"Exam {record.id} submitted ({status.value}): {correct}/{total} = {score}%, +{xp_gained} XP")
        return ExamSummary(
            score=score,
            graded_questions=graded,
            correct_count=correct,
            total_questions=total,
            xp_gained=xp_gained,
            xp_applied=xp_applied,
            status=status,
            exam_id=record.id,
            level_up=level_up,
            achievements=calculate_achievements(score, correct, total),
        )

    def _log_attempts(self, exam_id: str, graded: List[ExamQuestion]) -> None:
        try:
            self.db.insert_attempts(exam_id, graded)
        except Exception as e:
            logger.error(f"Failed to save attempts for exam {exam_id}: {e}")

    def _sync_one(self, entry: OfflineExam) -> None:
        self.db.insert_exam(entry.record)
        try:
            self.db.add_student_xp(entry.record.student_id, entry.xp_gained)
        except Exception:
            logger.exception(f"Failed to apply deferred XP for exam {entry.record.id}")

    def sync_offline(self) -> Dict[str, int]:
        """Push queued offline exams to the backend, keeping the ones that still fail."""
        pending = len(self.offline_queue.pending())
        if not pending:
            return {"synced": 0, "failed": 0, "remaining": 0}
        if not self.db.has_valid_session():
            logger.warning(f"Skipping offline sync of {pending} exams: not signed in")
            return {"synced": 0, "failed": 0, "remaining": pending}
        logger.info(f"Syncing {pending} offline exams...")
        return self.offline_queue.drain(self._sync_one)
