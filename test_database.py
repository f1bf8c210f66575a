"""DatabaseClient against a recording stand-in for the Supabase query builder."""
from types import SimpleNamespace

import pytest

import db as db_module
from edventure.database import PAGE_SIZE, DatabaseClient
from edventure.models import ExamRecord, QuestionType
from conftest import make_question


class FakeQuery:
    def __init__(self, supabase, table):
        self.supabase = supabase
        self.table = table
        self.calls = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return method

    def execute(self):
        self.supabase.executed.append((self.table, self.calls))
        pages = self.supabase.responses.get(self.table) or []
        return SimpleNamespace(data=pages.pop(0) if pages else [])


class FakeSupabase:
    def __init__(self, responses=None, session=None, session_error=None):
        self.responses = responses or {}
        self.executed = []

        def get_session():
            if session_error is not None:
                raise session_error
            return session

        self.auth = SimpleNamespace(get_session=get_session)

    def table(self, name):
        return FakeQuery(self, name)


def question_row(i):
    return {
        "id": f"q{i}",
        "question_text": f"Question {i}",
        "type": "MCQ",
        "options": None,
        "correct_answer": "A",
        "level": "Darjah 6",
        "subject": "Mathematics",
        "created_at": "2024-01-01T08:00:00+00:00",
        "topic": "ignored column",
    }


def calls_named(calls, name):
    return [(args, kwargs) for n, args, kwargs in calls if n == name]


def test_fetch_questions_pages_through_results():
    first_page = [question_row(i) for i in range(PAGE_SIZE)]
    second_page = [question_row(i) for i in range(PAGE_SIZE, PAGE_SIZE + 3)]
    supabase = FakeSupabase({"questions": [first_page, second_page]})
    client = DatabaseClient(supabase)

    questions = client.fetch_questions(("Darjah 5", "Darjah 6"), "Mathematics", ["MCQ"])

    assert len(questions) == PAGE_SIZE + 3
    assert questions[0].options == []
    assert questions[0].type == QuestionType.MCQ
    assert len(supabase.executed) == 2
    ranges = [calls_named(calls, "range")[0][0] for _, calls in supabase.executed]
    assert ranges == [(0, PAGE_SIZE - 1), (PAGE_SIZE, 2 * PAGE_SIZE - 1)]
    _, calls = supabase.executed[0]
    assert calls_named(calls, "in_")[0][0] == ("level", ["Darjah 5", "Darjah 6"])
    assert calls_named(calls, "order")[0] == (("created_at",), {"desc": True})


def test_fetch_completed_question_ids():
    supabase = FakeSupabase({"exams": [[{"question_ids": ["a", "b"]}, {"question_ids": None}]]})
    history = DatabaseClient(supabase).fetch_completed_question_ids("stu-1", "Science")
    assert history == [["a", "b"], []]
    _, calls = supabase.executed[0]
    assert (("completed", True), {}) in calls_named(calls, "eq")


def test_insert_exam_upserts_on_client_id():
    supabase = FakeSupabase()
    record = ExamRecord(
        student_id="stu-1", subject="Science", mode="Medium",
        total_questions=20, correct_answers=15, score=75, question_ids=["q1"],
    )
    DatabaseClient(supabase).insert_exam(record)
    table, calls = supabase.executed[0]
    assert table == "exams"
    (row,), kwargs = calls_named(calls, "upsert")[0]
    assert row["id"] == record.id
    assert row["mode"] == "Medium"
    assert kwargs == {"on_conflict": "id", "ignore_duplicates": True}


def test_insert_attempts_flattens_matching_answers():
    supabase = FakeSupabase()
    questions = [
        make_question("q1", user_answer="A", is_correct=True),
        make_question("q2", qtype="Matching", user_answer=["Cat:Meow", "Dog:Woof"], is_correct=False),
        make_question("q3"),
    ]
    DatabaseClient(supabase).insert_attempts("exam-1", questions)
    (rows,), _ = calls_named(supabase.executed[0][1], "insert")[0]
    assert rows[1]["answer_given"] == "Cat:Meow, Dog:Woof"
    assert rows[2] == {"exam_id": "exam-1", "question_id": "q3", "answer_given": "", "is_correct": False}


def test_insert_attempts_skips_empty_exam():
    supabase = FakeSupabase()
    DatabaseClient(supabase).insert_attempts("exam-1", [])
    assert supabase.executed == []


def test_add_student_xp_reads_then_writes():
    supabase = FakeSupabase({"students": [{"xp": 40}]})
    assert DatabaseClient(supabase).add_student_xp("stu-1", 25) == 65
    table, calls = supabase.executed[1]
    assert table == "students"
    assert calls_named(calls, "update")[0][0] == ({"xp": 65},)


@pytest.mark.parametrize(
    "session, error, expected",
    [
        (SimpleNamespace(access_token="jwt"), None, True),
        (SimpleNamespace(access_token=""), None, False),
        (None, None, False),
        (None, RuntimeError("auth down"), False),
    ],
)
def test_has_valid_session(session, error, expected):
    client = DatabaseClient(FakeSupabase(session=session, session_error=error))
    assert client.has_valid_session() is expected


def test_cached_client_uses_streamlit_factory(monkeypatch):
    supabase = FakeSupabase()
    monkeypatch.setattr(db_module, "get_supabase", lambda: supabase)
    assert DatabaseClient.cached().client is supabase


def test_missing_credentials(monkeypatch):
    monkeypatch.setattr(db_module.config, "SUPABASE_URL", None)
    monkeypatch.setattr(db_module.config, "SUPABASE_KEY", None)
    with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_KEY must be set"):
        db_module.get_supabase_uncached()


def test_client_uses_configured_credentials(monkeypatch):
    seen = []
    monkeypatch.setattr(db_module.config, "SUPABASE_URL", "https://abc.supabase.co")
    monkeypatch.setattr(db_module.config, "SUPABASE_KEY", "anon-key")
    monkeypatch.setattr(db_module, "create_client", lambda url, key: seen.append((url, key)) or "client")
    assert db_module.get_supabase_uncached() == "client"
    assert seen == [("https://abc.supabase.co", "anon-key")]
