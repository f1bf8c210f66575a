"""
Exam session state machine: setup -> exam -> results.

The session owns the working question set, the learner's answers, navigation,
matching-question pairing, the countdown and the submit gate. Every mutation
is snapshotted to a per-student store so a reload resumes mid-exam; the
snapshot is cleared on close and on successful submission.
"""
import logging
import random
from threading import Event, RLock, Thread
from typing import Callable, List, Optional, Union

from pydantic import ValidationError

import engine
from edventure import config
from edventure.answer_checker import OpenAISemanticChecker
from edventure.connectivity import ConnectivityMonitor
from edventure.database import DatabaseClient
from edventure.errors import describe_error
from edventure.models import (
    ExamMode,
    ExamQuestion,
    ExamStep,
    ExamSummary,
    MatchingPair,
    QuestionType,
    SessionSnapshot,
    Student,
    get_mode_config,
)
from edventure.offline_queue import OfflineExamQueue
from edventure.question_selector import QuestionSelector, shuffle
from edventure.storage import JsonFileStore, KeyValueStore, StreamlitSessionStore
from edventure.submission import SubmissionPipeline

logger = logging.getLogger(__name__)


class ExamTimer:
    """Calls on_tick every interval seconds on a daemon thread until it returns False or is cancelled."""

    def __init__(self, on_tick: Callable[[], bool], interval: float = engine.TIMER_INTERVAL_SECONDS):
        self.on_tick = on_tick
        self.interval = interval
        self._stop = Event()
        self._thread: Optional[Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="exam-timer", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                keep_going = self.on_tick()
            except Exception:
                logger.exception("Exam timer tick failed")
                keep_going = False
            if not keep_going:
                self._stop.set()


class ExamSession:
    def __init__(
        self,
        student: Student,
        selector: QuestionSelector,
        pipeline: SubmissionPipeline,
        store: KeyValueStore,
        rng: Optional[random.Random] = None,
        auto_timer: bool = True,
        sync_on_mount: bool = True,
    ):
        self.student = student
        self.selector = selector
        self.pipeline = pipeline
        self.store = store
        self.rng = rng or random.Random()
        self.auto_timer = auto_timer

        self._lock = RLock()
        self._generation = 0
        self._finishing = False
        self._timer: Optional[ExamTimer] = None
        self.loading = False
        self.error = ""
        self.summary: Optional[ExamSummary] = None

        self._reset_state()
        self._restore()

        if sync_on_mount:
            self.check_connectivity()
        if self.auto_timer and self.step == ExamStep.EXAM:
            self.resume()

    # ============= State =============

    def _reset_state(self, subject: str = "Mathematics", mode: ExamMode = ExamMode.EASY) -> None:
        self.step = ExamStep.SETUP
        self.selected_subject = subject
        self.selected_mode = mode
        self.questions: List[ExamQuestion] = []
        self.current_question_index = 0
        self.time_left = 0
        self.exam_score = 0
        self.matching_pairs: List[MatchingPair] = []
        self.selected_left_item: Optional[str] = None
        self.submit_warning: List[int] = []
        self.summary = None
        self.error = ""
        self.loading = False
        self._finishing = False
        self._generation += 1

    def to_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            student_id=self.student.id,
            step=self.step,
            selected_subject=self.selected_subject,
            selected_mode=self.selected_mode,
            questions=self.questions,
            current_question_index=self.current_question_index,
            time_left=self.time_left,
            exam_score=self.exam_score,
            matching_pairs=self.matching_pairs,
            selected_left_item=self.selected_left_item,
            submit_warning=self.submit_warning,
        )

    def _restore(self) -> None:
        raw = self.store.get(self.student.id)
        if raw is None:
            return
        try:
            snapshot = SessionSnapshot.model_validate(raw)
            if snapshot.student_id != self.student.id:
                raise ValueError(f"snapshot belongs to student {snapshot.student_id}")
        except (ValidationError, ValueError) as e:
            logger.warning(f"Discarding invalid exam snapshot for {self.student.id}: {e}")
            self.clear_snapshot()
            return
        if snapshot.step == ExamStep.RESULTS:
            self.clear_snapshot()
            return

        self.step = snapshot.step
        self.selected_subject = snapshot.selected_subject
        self.selected_mode = snapshot.selected_mode
        self.questions = snapshot.questions
        self.current_question_index = snapshot.current_question_index
        self.time_left = snapshot.time_left
        self.exam_score = snapshot.exam_score
        self.matching_pairs = snapshot.matching_pairs
        self.selected_left_item = snapshot.selected_left_item
        self.submit_warning = snapshot.submit_warning
        logger.info(f"Resumed exam session for {self.student.id} at step {self.step.value}")

    def _save(self) -> None:
        if self.step == ExamStep.RESULTS:
            return
        try:
            self.store.set(self.student.id, self.to_snapshot().model_dump(mode="json"))
        except Exception as e:
            logger.error(f"Failed to save exam snapshot for {self.student.id}: {e}")

    def clear_snapshot(self) -> None:
        self.store.delete(self.student.id)

    def check_connectivity(self) -> None:
        """Poll the backend; queued offline exams are pushed once it is reachable."""
        try:
            if self.pipeline.connectivity.poll():
                self.pipeline.sync_offline()
        except Exception as e:
            logger.error(f"Offline exam sync failed: {e}")

    # ============= Setup =============

    def select_subject(self, subject: str) -> None:
        if subject not in engine.SUBJECTS:
            raise ValueError(f"Unknown subject: {subject}")
        with self._lock:
            self._require(ExamStep.SETUP)
            self.selected_subject = subject
            self._save()

    def select_mode(self, mode: Union[ExamMode, str]) -> None:
        with self._lock:
            self._require(ExamStep.SETUP)
            self.selected_mode = ExamMode(mode)
            self._save()

    def start_exam(self) -> bool:
        """Select questions and enter the exam step. On failure, sets `error` and stays in setup."""
        with self._lock:
            self._require(ExamStep.SETUP)
            self.loading = True
            self.error = ""
        try:
            questions = self.selector.select(
                self.student.level, self.selected_subject, self.selected_mode, self.student.id
            )
        except Exception as e:
            logger.warning(f"Could not start exam for {self.student.id}: {e}")
            with self._lock:
                self.error = describe_error(e)
                self.loading = False
            return False

        with self._lock:
            self.questions = questions
            self.time_left = get_mode_config(self.selected_mode).time_seconds
            self.current_question_index = 0
            self.exam_score = 0
            self.submit_warning = []
            self.step = ExamStep.EXAM
            self.loading = False
            self._generation += 1
            self._init_matching()
            self._save()
        if self.auto_timer:
            self.resume()
        return True

    # ============= Answers =============

    @property
    def current_question(self) -> Optional[ExamQuestion]:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    def select_answer(self, answer: Union[str, List[str]]) -> None:
        with self._lock:
            self._require_active()
            self.questions[self.current_question_index].user_answer = answer
            self._save()

    def select_left_item(self, left: Optional[str]) -> None:
        with self._lock:
            self._require_active()
            self.selected_left_item = left
            self._save()

    def select_match(self, left: str, right: str) -> None:
        """
        Pair `right` with `left`. A `right` already matched to another left is
        taken from it, so each right belongs to at most one left.
        """
        with self._lock:
            self._require_active()
            question = self.current_question
            if question.type != QuestionType.MATCHING:
                raise ValueError("Current question is not a matching question")
            if not any(pair.left == left for pair in self.matching_pairs):
                raise ValueError(f"Unknown matching item: {left}")

            pairs = []
            for pair in self.matching_pairs:
                if pair.left == left:
                    pairs.append(MatchingPair(left=left, right=right, matched=True))
                elif pair.right == right and pair.matched:
                    pairs.append(MatchingPair(left=pair.left, right=pair.right, matched=False))
                else:
                    pairs.append(pair)
            self.matching_pairs = pairs
            self.selected_left_item = None
            question.user_answer = [f"{pair.left}:{pair.right}" for pair in pairs if pair.matched]
            self._save()

    def _init_matching(self) -> None:
        self.selected_left_item = None
        question = self.current_question
        if question is None or question.type != QuestionType.MATCHING or not question.options:
            self.matching_pairs = []
            return

        parsed = []
        for option in question.options:
            left, _, right = option.partition(":")
            parsed.append((left.strip(), right.strip()))
        rights = shuffle([right for _, right in parsed], self.rng)
        pairs = [MatchingPair(left=left, right=decoy) for (left, _), decoy in zip(parsed, rights)]

        # Keep pairs the learner already made on this question
        saved = question.user_answer if isinstance(question.user_answer, list) else []
        for item in saved:
            left, _, right = item.partition(":")
            for pair in pairs:
                if pair.left == left:
                    pair.right = right
                    pair.matched = True
        self.matching_pairs = pairs

    def is_answered(self, index: int) -> bool:
        if not 0 <= index < len(self.questions):
            return False
        question = self.questions[index]
        answer = question.user_answer
        if question.type == QuestionType.MATCHING:
            return isinstance(answer, list) and len(answer) > 0
        return isinstance(answer, str) and answer != ""

    def unanswered_questions(self) -> List[int]:
        """1-based numbers of questions without an answer."""
        return [i + 1 for i in range(len(self.questions)) if not self.is_answered(i)]

    # ============= Navigation =============

    def _move_to(self, index: int) -> None:
        self.error = ""
        self.submit_warning = []
        self.current_question_index = index
        self._init_matching()
        self._save()

    def next_question(self) -> Optional[ExamSummary]:
        """
        Advance, or on the last question submit. Unanswered questions raise the
        submit gate (`submit_warning`) instead of submitting.
        """
        with self._lock:
            self._require_active()
            self.error = ""
            if self.current_question_index < len(self.questions) - 1:
                self._move_to(self.current_question_index + 1)
                return None
            unanswered = self.unanswered_questions()
            if unanswered:
                self.submit_warning = unanswered
                self._save()
                return None
        return self.finish()

    def previous_question(self) -> None:
        with self._lock:
            self._require_active()
            self.error = ""
            if self.current_question_index > 0:
                self._move_to(self.current_question_index - 1)

    def jump_to(self, index: int) -> None:
        with self._lock:
            self._require_active()
            if 0 <= index < len(self.questions):
                self._move_to(index)

    def jump_to_first_unanswered(self) -> None:
        with self._lock:
            unanswered = self.unanswered_questions()
            if unanswered:
                self.jump_to(unanswered[0] - 1)
            else:
                self.submit_warning = []
                self._save()

    def dismiss_submit_warning(self) -> None:
        with self._lock:
            self.submit_warning = []
            self._save()

    def confirm_submit(self) -> Optional[ExamSummary]:
        """Submit despite unanswered questions."""
        with self._lock:
            self.submit_warning = []
        return self.finish()

    # ============= Timer =============

    def resume(self) -> None:
        """Start the countdown for an active exam, or finish one whose time already ran out."""
        if self.step != ExamStep.EXAM:
            return
        if self.time_left <= 0:
            self.finish()
            return
        if self._timer is None or not self._timer.running:
            self._timer = ExamTimer(self.tick)
            self._timer.start()

    def stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def tick(self) -> bool:
        """One second elapsed. Reaching zero finishes the exam. Returns False once the timer should stop."""
        with self._lock:
            if self.step != ExamStep.EXAM or self.time_left <= 0:
                return False
            if self._finishing:
                return True
            self.time_left -= 1
            expired = self.time_left == 0
            self._save()
        if expired:
            logger.info(f"Time is up for {self.student.id}, submitting")
            self.finish()
            return False
        if self.time_left % engine.CONNECTIVITY_POLL_SECONDS == 0:
            self.check_connectivity()
        return True

    # ============= Submission =============

    def finish(self) -> Optional[ExamSummary]:
        """
        Grade and submit. Runs at most once at a time; a failed submission
        leaves the session in the exam step with `error` set so it can be retried.
        """
        with self._lock:
            if self.step != ExamStep.EXAM or self._finishing:
                return None
            self._finishing = True
            self.loading = True
            self.error = ""
            self.submit_warning = []
            generation = self._generation

        try:
            summary = self.pipeline.finish(self)
        except Exception as e:
            logger.warning(f"Exam submission failed for {self.student.id}: {e}")
            with self._lock:
                if generation != self._generation:
                    logger.info(f"Dropping submission error for {self.student.id}: exam was closed")
                    return None
                self.error = describe_error(e)
                self._finishing = False
                self.loading = False
                self._save()
            return None

        with self._lock:
            if generation != self._generation:
                logger.info(f"Discarding late submission result {summary.exam_id}: exam was closed")
                return None
            self.clear_snapshot()
            self.stop_timer()
            self.questions = summary.graded_questions
            self.exam_score = summary.score
            self.summary = summary
            self.matching_pairs = []
            self.selected_left_item = None
            self.step = ExamStep.RESULTS
            self._finishing = False
            self.loading = False
        return summary

    # ============= Results =============

    def try_again(self) -> None:
        """Back to setup with the same subject and mode."""
        with self._lock:
            self.stop_timer()
            self._reset_state(self.selected_subject, self.selected_mode)
            self._save()

    def close(self) -> None:
        """Discard the session and its snapshot. An in-flight submission still persists but no longer updates this session."""
        with self._lock:
            self.stop_timer()
            self.clear_snapshot()
            self._reset_state(self.selected_subject, self.selected_mode)

    # ============= Guards =============

    def _require(self, step: ExamStep) -> None:
        if self.step != step:
            raise RuntimeError(f"Not allowed in step {self.step.value}")

    def _require_active(self) -> None:
        self._require(ExamStep.EXAM)
        if self._finishing:
            raise RuntimeError("Exam is being submitted")


def streamlit_session(student: Student) -> ExamSession:
    """
    Build an ExamSession for a Streamlit host.

    Uses the cached Supabase client, a per-tab snapshot in st.session_state and
    the file-backed offline queue. Create one per browser session and keep it
    in st.session_state; each instance owns its own timer.
    """
    db = DatabaseClient.cached()
    checker = OpenAISemanticChecker()
    if not checker.configured:
        logger.info("OPENAI_API_KEY not set; short answers are graded by exact and fuzzy match only")
    pipeline = SubmissionPipeline(
        db,
        OfflineExamQueue(JsonFileStore(engine.OFFLINE_NAMESPACE, config.STORE_DIR)),
        ConnectivityMonitor(),
        semantic_checker=checker if checker.configured else None,
    )
    return ExamSession(student, QuestionSelector(db), pipeline, StreamlitSessionStore(engine.SNAPSHOT_NAMESPACE))
