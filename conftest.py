import random
from datetime import datetime, timedelta

import pytest
import requests

from edventure.models import ExamQuestion, Student
from edventure.offline_queue import OfflineExamQueue
from edventure.question_selector import QuestionSelector
from edventure.storage import MemoryStore
from edventure.submission import SubmissionPipeline

BASE_TIME = datetime(2024, 1, 1, 8, 0, 0)


def make_question(qid, qtype="MCQ", subject="Mathematics", level="Darjah 6", created_offset=0, **kwargs):
    data = {
        "id": qid,
        "question_text": f"Question {qid}?",
        "type": qtype,
        "options": ["A", "B", "C", "D"],
        "correct_answer": "A",
        "level": level,
        "subject": subject,
        "created_at": BASE_TIME + timedelta(minutes=created_offset),
    }
    data.update(kwargs)
    return ExamQuestion.model_validate(data)


def make_bank(count, prefix="q", **kwargs):
    """`count` questions; higher index = newer."""
    return [make_question(f"{prefix}{i}", created_offset=i, **kwargs) for i in range(count)]


class FakeDatabase:
    def __init__(self, questions=None):
        self.questions = list(questions or [])
        self.history = {}
        self.exams = {}
        self.insert_calls = 0
        self.insert_failures = 0
        self.insert_error = ConnectionError("network unreachable")
        self.attempts = []
        self.attempts_fail = False
        self.xp = {}
        self.xp_fail = False
        self.session_valid = True

    def fetch_questions(self, levels, subject, types):
        levels, types = set(levels), set(types)
        matches = [
            q for q in self.questions
            if q.level in levels and q.subject == subject and q.type.value in types
        ]
        return sorted(matches, key=lambda q: q.created_at, reverse=True)

    def fetch_completed_question_ids(self, student_id, subject):
        return self.history.get((student_id, subject), [])

    def insert_exam(self, record):
        self.insert_calls += 1
        if self.insert_failures > 0:
            self.insert_failures -= 1
            raise self.insert_error
        self.exams.setdefault(record.id, record.to_row())

    def insert_attempts(self, exam_id, questions):
        if self.attempts_fail:
            raise RuntimeError("attempts table missing")
        self.attempts.extend((exam_id, q.id, bool(q.is_correct)) for q in questions)

    def add_student_xp(self, student_id, delta):
        if self.xp_fail:
            raise RuntimeError("permission denied for table students")
        self.xp[student_id] = self.xp.get(student_id, 0) + delta
        return self.xp[student_id]

    def has_valid_session(self):
        return self.session_valid


class FakeConnectivity:
    def __init__(self, online=True):
        self.online = online
        self.last = None
        self.callbacks = []

    def is_online(self):
        self.last = self.online
        return self.online

    def on_online(self, callback):
        self.callbacks.append(callback)

    def poll(self):
        previous = self.last
        online = self.is_online()
        if online and previous is False:
            for callback in self.callbacks:
                callback()
        return online

    def come_back_online(self):
        self.online = True
        for callback in self.callbacks:
            callback()


class FakeHttp:
    def __init__(self, up=True):
        self.up = up
        self.requests = []

    def head(self, url, timeout):
        self.requests.append((url, timeout))
        if not self.up:
            raise requests.ConnectionError("Name or service not known")
        return object()


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def student():
    return Student(id="stu-1", name="Aina", level="Darjah 6", school="SK Taman", xp=0)


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def connectivity():
    return FakeConnectivity()


@pytest.fixture
def snapshot_store():
    return MemoryStore("exam-state")


@pytest.fixture
def offline_queue():
    return OfflineExamQueue(MemoryStore("offline-exams"))


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def pipeline(db, offline_queue, connectivity, sleeps):
    return SubmissionPipeline(db, offline_queue, connectivity, max_attempts=3, sleep=sleeps)


@pytest.fixture
def selector(db):
    return QuestionSelector(db, rng=random.Random(7))


@pytest.fixture
def make_session(student, selector, pipeline, snapshot_store):
    from edventure.exam_session import ExamSession

    def _make(**kwargs):
        kwargs.setdefault("rng", random.Random(3))
        kwargs.setdefault("auto_timer", False)
        kwargs.setdefault("sync_on_mount", False)
        return ExamSession(student, selector, pipeline, snapshot_store, **kwargs)

    return _make
