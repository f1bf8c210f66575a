"""Domain models for the exam engine."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

import engine


class QuestionType(str, Enum):
    MCQ = "MCQ"
    SHORT_ANSWER = "ShortAnswer"
    SUBJECTIVE = "Subjective"
    MATCHING = "Matching"


class ExamMode(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    FULL = "Full"


class ExamStep(str, Enum):
    SETUP = "setup"
    EXAM = "exam"
    RESULTS = "results"


class SubmissionStatus(str, Enum):
    PERSISTED = "persisted"
    OFFLINE_DEFERRED = "offline_deferred"


class ModeConfig(BaseModel):
    """Question count, time budget and allowed types for one exam mode."""

    model_config = ConfigDict(frozen=True)

    question_count: int
    time_minutes: int
    types: tuple[QuestionType, ...]

    @property
    def time_seconds(self) -> int:
        return self.time_minutes * 60


def get_mode_config(mode: ExamMode | str) -> ModeConfig:
    return ModeConfig(**engine.MODE_CONFIG[ExamMode(mode).value])


class Student(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    level: str
    school: str = ""
    xp: int = Field(default=0, ge=0)


class Question(BaseModel):
    """A question-bank row. Matching options encode `left:right` pairs."""

    model_config = ConfigDict(extra="ignore")

    id: str
    question_text: str
    type: QuestionType
    options: List[str] = Field(default_factory=list)
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    level: Optional[str] = None
    subject: Optional[str] = None
    created_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _null_options(cls, data):
        if isinstance(data, dict) and data.get("options") is None:
            data = {**data, "options": []}
        return data


class ExamQuestion(Question):
    """Session-scoped question carrying the learner's answer and, after grading, the verdict."""

    user_answer: Union[str, List[str], None] = None
    is_correct: Optional[bool] = None


class MatchingPair(BaseModel):
    left: str
    right: str
    matched: bool = False


class ExamRecord(BaseModel):
    """Append-only exam row. `id` is generated client-side and doubles as the idempotency key."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    student_id: str
    subject: str
    mode: ExamMode
    total_questions: int
    correct_answers: int
    score: int = Field(ge=0, le=100)
    time_taken: int = Field(default=0, ge=0)
    question_ids: List[str]
    completed: bool = True

    def to_row(self) -> dict:
        return self.model_dump(mode="json")


class OfflineExam(BaseModel):
    record: ExamRecord
    xp_gained: int = 0
    queued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    offline: bool = True


class LevelUp(BaseModel):
    leveled_up: bool
    old_level: int
    new_level: int
    levels_gained: int
    milestone_reached: bool
    milestone_reward: Optional[str] = None


class Achievement(BaseModel):
    name: str
    icon: str
    description: str


class ExamSummary(BaseModel):
    """What the submission pipeline hands back to the session."""

    score: int
    graded_questions: List[ExamQuestion]
    correct_count: int
    total_questions: int
    xp_gained: int
    xp_applied: bool
    status: SubmissionStatus
    exam_id: str
    level_up: Optional[LevelUp] = None
    achievements: List[Achievement] = Field(default_factory=list)


class SessionSnapshot(BaseModel):
    """Versioned, explicitly typed exam session persisted per student."""

    version: int = engine.SESSION_SNAPSHOT_VERSION
    student_id: str
    step: ExamStep = ExamStep.SETUP
    selected_subject: str = "Mathematics"
    selected_mode: ExamMode = ExamMode.EASY
    questions: List[ExamQuestion] = Field(default_factory=list)
    current_question_index: int = Field(default=0, ge=0)
    time_left: int = Field(default=0, ge=0)
    exam_score: int = Field(default=0, ge=0, le=100)
    matching_pairs: List[MatchingPair] = Field(default_factory=list)
    selected_left_item: Optional[str] = None
    submit_warning: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_consistency(self):
        if self.version != engine.SESSION_SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version {self.version}")
        if self.step != ExamStep.SETUP:
            if not self.questions:
                raise ValueError(f"step {self.step.value} requires questions")
            if self.current_question_index >= len(self.questions):
                raise ValueError("current_question_index out of range")
        return self
