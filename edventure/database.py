"""
Database operations for the exam engine.
Handles Supabase reads of the question bank and exam history, and writes of
exam records, attempts and student XP.

Errors from the Supabase client propagate to the caller; the exam session
decides how to surface them.
"""
import logging
from typing import Dict, Iterable, List, Optional

from supabase import Client

from edventure.models import ExamQuestion, ExamRecord

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000


class DatabaseClient:
    """Wrapper around the Supabase client with exam-engine operations."""

    def __init__(self, client: Optional[Client] = None):
        if client is None:
            from db import get_supabase_uncached
            client = get_supabase_uncached()
        self.client: Client = client

    @classmethod
    def cached(cls) -> "DatabaseClient":
        """Client shared across Streamlit reruns."""
        from db import get_supabase
        return cls(get_supabase())

    # ============= Question bank =============

    def fetch_questions(self, levels: Iterable[str], subject: str, types: Iterable[str]) -> List[ExamQuestion]:
        """
        Fetch every question for the given levels, subject and types, newest first.

        Pages through the table since Supabase caps each response (often at 1000 rows).
        """
        levels = list(levels)
        types = list(types)
        rows: List[Dict] = []
        offset = 0
        while True:
            response = (
                self.client.table("questions")
                .select("*")
                .in_("level", levels)
                .eq("subject", subject)
                .in_("type", types)
                .order("created_at", desc=True)
                .range(offset, offset + PAGE_SIZE - 1)
                .execute()
            )
            data = response.data or []
            rows.extend(data)
            if len(data) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        logger.debug(f"Fetched {len(rows)} questions for {subject} at {levels}")
        return [ExamQuestion.model_validate(row) for row in rows]

    def fetch_completed_question_ids(self, student_id: str, subject: str) -> List[List[str]]:
        """question_ids of each completed exam the student took in this subject."""
        response = (
            self.client.table("exams")
            .select("question_ids")
            .eq("student_id", student_id)
            .eq("subject", subject)
            .eq("completed", True)
            .execute()
        )
        return [row.get("question_ids") or [] for row in (response.data or [])]

    # ============= Exams =============

    def insert_exam(self, record: ExamRecord) -> None:
        """
        Insert one exam record. Upsert on the client-generated id with duplicates
        ignored, so a retry after an ambiguous failure cannot create a second row.
        """
        self.client.table("exams").upsert(record.to_row(), on_conflict="id", ignore_duplicates=True).execute()

    def insert_attempts(self, exam_id: str, questions: List[ExamQuestion]) -> None:
        rows = []
        for question in questions:
            answer = question.user_answer
            if isinstance(answer, list):
                answer = ", ".join(answer)
            rows.append({
                "exam_id": exam_id,
                "question_id": question.id,
                "answer_given": answer or "",
                "is_correct": bool(question.is_correct),
            })
        if rows:
            self.client.table("attempts").insert(rows).execute()

    # ============= Students =============

    def get_student_xp(self, student_id: str) -> int:
        response = self.client.table("students").select("xp").eq("id", student_id).single().execute()
        return int((response.data or {}).get("xp") or 0)

    def update_student_xp(self, student_id: str, xp: int) -> None:
        self.client.table("students").update({"xp": xp}).eq("id", student_id).execute()

    def add_student_xp(self, student_id: str, delta: int) -> int:
        """Add delta to the stored XP total and return the new total."""
        new_xp = self.get_student_xp(student_id) + delta
        self.update_student_xp(student_id, new_xp)
        return new_xp

    # ============= Auth =============

    def has_valid_session(self) -> bool:
        try:
            session = self.client.auth.get_session()
        except Exception as e:
            logger.warning(f"Could not read auth session: {e}")
            return False
        return bool(session and session.access_token)
