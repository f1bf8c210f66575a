"""Question selection against an in-memory question bank."""
import random

import pytest

from conftest import FakeDatabase, make_bank, make_question
from edventure.errors import InsufficientQuestions
from edventure.models import ExamMode
from edventure.question_selector import QuestionSelector, allowed_levels, pick_questions, shuffle


def selector_for(db, seed=7):
    return QuestionSelector(db, rng=random.Random(seed))


def test_allowed_levels_follow_grade_bands():
    assert allowed_levels("Darjah 3") == ("Darjah 1", "Darjah 2", "Darjah 3")
    assert allowed_levels("Darjah 4") == ("Darjah 4",)
    assert allowed_levels("Tingkatan 2") == ("Tingkatan 2",)
    assert allowed_levels("Form X") == ("Form X",)


def test_shuffle_is_a_permutation_and_leaves_input_alone():
    items = list(range(20))
    shuffled = shuffle(items, random.Random(1))
    assert sorted(shuffled) == items
    assert items == list(range(20))
    assert shuffle([], random.Random(1)) == []


def test_selects_required_count_without_duplicates():
    db = FakeDatabase(make_bank(30))
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    ids = [q.id for q in questions]
    assert len(ids) == 10
    assert len(set(ids)) == 10


def test_draws_only_from_newest_window_of_fresh_questions():
    db = FakeDatabase(make_bank(50))
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    newest = {f"q{i}" for i in range(30, 50)}
    assert {q.id for q in questions} <= newest


def test_duplicate_rows_are_collapsed():
    bank = make_bank(10)
    db = FakeDatabase(bank + [bank[0], bank[1]])
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    assert sorted(q.id for q in questions) == sorted(q.id for q in bank)


def test_filters_by_level_subject_and_type():
    bank = make_bank(10)
    noise = [
        make_question("form1", level="Tingkatan 1", created_offset=100),
        make_question("science", subject="Science", created_offset=100),
        make_question("short", qtype="ShortAnswer", created_offset=100),
    ]
    db = FakeDatabase(bank + noise)
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    assert not {"form1", "science", "short"} & {q.id for q in questions}


def test_lower_grades_in_band_are_eligible():
    bank = make_bank(5, prefix="d4-", level="Darjah 4") + make_bank(5, prefix="d6-", level="Darjah 6")
    db = FakeDatabase(bank)
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    assert len(questions) == 10


def test_insufficient_pool_raises_with_counts():
    db = FakeDatabase(make_bank(5))
    with pytest.raises(InsufficientQuestions) as excinfo:
        selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    error = excinfo.value
    assert (error.found, error.required) == (5, 10)
    assert "Darjah 4, Darjah 5, Darjah 6" in str(error)
    assert "Found 5 questions, need 10." in str(error)


def test_seen_questions_pad_a_short_fresh_pool():
    db = FakeDatabase(make_bank(30))
    db.history[("stu-1", "Mathematics")] = [[f"q{i}" for i in range(0, 15)], [f"q{i}" for i in range(15, 25)]]
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    ids = {q.id for q in questions}
    fresh = {f"q{i}" for i in range(25, 30)}
    assert len(ids) == 10
    assert fresh <= ids


def test_all_seen_still_fills_the_exam():
    db = FakeDatabase(make_bank(12))
    db.history[("stu-1", "Mathematics")] = [[f"q{i}" for i in range(12)]]
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    assert len({q.id for q in questions}) == 10


def test_history_of_other_subjects_is_ignored():
    db = FakeDatabase(make_bank(50))
    db.history[("stu-1", "Science")] = [[f"q{i}" for i in range(50)]]
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    assert {q.id for q in questions} <= {f"q{i}" for i in range(30, 50)}


def test_selected_questions_carry_no_answers():
    bank = [q.model_copy(update={"user_answer": "A", "is_correct": True}) for q in make_bank(10)]
    db = FakeDatabase(bank)
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")
    assert all(q.user_answer is None and q.is_correct is None for q in questions)
    assert all(q.user_answer == "A" for q in bank)


def test_same_seed_gives_same_exam():
    db = FakeDatabase(make_bank(40))
    first = [q.id for q in selector_for(db, seed=11).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")]
    second = [q.id for q in selector_for(db, seed=11).select("Darjah 6", "Mathematics", ExamMode.EASY, "stu-1")]
    assert first == second


def test_medium_mode_mixes_mcq_and_short_answers():
    bank = make_bank(12, prefix="m") + make_bank(12, prefix="s", qtype="ShortAnswer")
    db = FakeDatabase(bank)
    questions = selector_for(db).select("Darjah 6", "Mathematics", ExamMode.MEDIUM, "stu-1")
    assert len(questions) == 20
    assert {q.type.value for q in questions} <= {"MCQ", "ShortAnswer"}


def test_pick_questions_prefers_fresh():
    fresh = make_bank(4, prefix="f")
    seen = make_bank(6, prefix="s")
    picked = pick_questions(fresh, seen, 5, random.Random(2))
    assert len(picked) == 5
    assert picked[:4] == fresh
    assert picked[4].id.startswith("s")
