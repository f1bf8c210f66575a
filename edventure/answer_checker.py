"""
Answer checking: per-type correctness rules for graded exam questions.

Short answers go through three tiers: exact match after normalization,
Levenshtein fuzzy match, then an optional semantic check through OpenAI.
The semantic tier never fails a grade: when it cannot run the verdict falls
back to the exact/fuzzy result.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from openai import OpenAI

from edventure import config
from edventure.errors import EvaluatorUnavailable
from edventure.models import ExamQuestion, QuestionType

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_PAIR_SEPARATORS = re.compile(r"[,;\n]")

CHECKER_PROMPT = """
You are an automated answer checker for a student quiz.
The correct answer is: "{correct}"
The student's answer is: "{student}"

If the student's answer means the same thing as the correct answer, even with small spelling errors or synonyms, mark it as correct.
Otherwise, mark as incorrect.

Return only "correct" or "incorrect" and a one-sentence reason.
"""


@dataclass(frozen=True)
class CheckResult:
    result: str  # correct | incorrect | unknown
    method: str  # exact | fuzzy | ai | validation | none | error
    reason: str

    @property
    def is_correct(self) -> bool:
        return self.result == "correct"


def normalize(text: Optional[str]) -> str:
    """Lowercase, trim, strip punctuation, collapse whitespace."""
    if not text:
        return ""
    text = _PUNCTUATION.sub("", text.strip().lower())
    return _WHITESPACE.sub(" ", text).strip()


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute each cost 1)."""
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(a) + 1))
    for i, cb in enumerate(b, start=1):
        current = [i]
        for j, ca in enumerate(a, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], current[j - 1], previous[j]))
        previous = current
    return previous[-1]


class OpenAISemanticChecker:
    """Asks a chat model whether two answers mean the same thing."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client: Optional[OpenAI] = None):
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.model = model or config.OPENAI_MODEL
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._client or self.api_key)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=30.0, max_retries=2)
        return self._client

    def check(self, student_answer: str, correct_answer: str) -> CheckResult:
        if not self.configured:
            raise EvaluatorUnavailable("Cannot perform AI check without API key", configured=False)
        try:
            completion = self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You are an expert quiz answer checker."},
                    {"role": "user", "content": CHECKER_PROMPT.format(correct=correct_answer, student=student_answer)},
                ],
                max_tokens=50,
                temperature=0,
            )
            text = (completion.choices[0].message.content or "").strip().lower()
        except Exception as e:
            raise EvaluatorUnavailable(f"AI check failed: {e}", configured=True) from e

        # "incorrect" contains "correct", so read the leading word only
        parts = text.split(None, 1)
        verdict = parts[0].strip(".,:;!\"'") if parts else ""
        if verdict not in ("correct", "incorrect"):
            raise EvaluatorUnavailable(f"AI check returned no verdict: {text!r}", configured=True)
        reason = parts[1] if len(parts) > 1 else text
        return CheckResult(result=verdict, method="ai", reason=reason)


def check_short_answer(
    student_answer: Optional[str],
    correct_answer: Optional[str],
    fuzzy_threshold: Optional[int] = None,
    semantic_checker: Optional[OpenAISemanticChecker] = None,
) -> CheckResult:
    """
    Check a short answer.

    Returns "unknown" when only the semantic tier could decide and it was
    unavailable; callers reading a boolean treat that as incorrect.
    """
    threshold = config.FUZZY_THRESHOLD if fuzzy_threshold is None else fuzzy_threshold
    if not student_answer or not correct_answer:
        return CheckResult("incorrect", "validation", "Missing student answer or correct answer")

    norm_student = normalize(student_answer)
    norm_correct = normalize(correct_answer)
    if norm_student == norm_correct:
        return CheckResult("correct", "exact", "Exact match after normalization")

    distance = levenshtein(norm_student, norm_correct)
    if distance <= threshold:
        return CheckResult("correct", "fuzzy", f"Fuzzy match with distance {distance}")

    if semantic_checker is None:
        return CheckResult("unknown", "none", "Cannot perform AI check without API key")
    try:
        return semantic_checker.check(student_answer, correct_answer)
    except EvaluatorUnavailable as e:
        if e.configured:
            logger.warning(f"Semantic answer check unavailable, using exact/fuzzy verdict: {e.reason}")
        else:
            logger.debug(f"Semantic answer check not configured: {e.reason}")
        return CheckResult("unknown", "error" if e.configured else "none", e.reason)


def _split_pairs(value: Union[str, Sequence[str], None]) -> List[str]:
    if value is None:
        return []
    items = [value] if isinstance(value, str) else list(value)
    pairs = []
    for item in items:
        pairs.extend(part for part in _PAIR_SEPARATORS.split(item) if part.strip())
    return pairs


def canonical_matching(value: Union[str, Sequence[str], None]) -> List[str]:
    """Normalize each `left:right` pair per side and sort, so pair order never matters."""
    canonical = []
    for pair in _split_pairs(value):
        left, _, right = pair.partition(":")
        canonical.append(f"{normalize(left)}:{normalize(right)}")
    return sorted(canonical)


def _answer_text(answer: Union[str, Sequence[str], None]) -> str:
    if answer is None:
        return ""
    if isinstance(answer, str):
        return answer
    return ", ".join(answer)


def grade_question(
    question: ExamQuestion,
    semantic_checker: Optional[OpenAISemanticChecker] = None,
    fuzzy_threshold: Optional[int] = None,
) -> bool:
    """Grade one question. Never raises: evaluator problems degrade to the exact/fuzzy verdict."""
    answer = question.user_answer
    if not answer:
        return False
    correct = question.correct_answer or ""

    if question.type == QuestionType.MATCHING:
        return canonical_matching(answer) == canonical_matching(correct)

    user_text = _answer_text(answer)
    if question.type == QuestionType.MCQ:
        return normalize(user_text) == normalize(correct)
    if question.type == QuestionType.SHORT_ANSWER:
        try:
            return check_short_answer(user_text, correct, fuzzy_threshold, semantic_checker).is_correct
        except Exception:
            logger.exception(f"Short-answer check failed for question {question.id}")
            return check_short_answer(user_text, correct, fuzzy_threshold, None).is_correct
    if question.type == QuestionType.SUBJECTIVE:
        return normalize(correct) in normalize(user_text)
    return False
