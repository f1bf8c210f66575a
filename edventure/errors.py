"""Exam engine error taxonomy and user-facing messages."""
from typing import Iterable, Optional


class ExamError(Exception):
    """Base class for errors raised by the exam engine."""


class InsufficientQuestions(ExamError):
    def __init__(self, subject: str, levels: Iterable[str], found: int, required: int):
        self.subject = subject
        self.levels = list(levels)
        self.found = found
        self.required = required
        super().__init__(
            f"Not enough questions available for {subject} at levels: {', '.join(self.levels)}. "
            f"Found {found} questions, need {required}."
        )


class AuthRequired(ExamError):
    def __init__(self, message: str = "No valid session. Please sign in again before submitting."):
        super().__init__(message)


class PersistenceFailed(ExamError):
    def __init__(self, last_error: Optional[BaseException], attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"Failed to save exam results after {attempts} attempts: {last_error}")


class EvaluatorUnavailable(ExamError):
    """The semantic answer check could not run. `configured` tells "never set up" from "failing"."""

    def __init__(self, reason: str, configured: bool):
        self.reason = reason
        self.configured = configured
        super().__init__(reason)


_NETWORK_WORDS = ("network", "connect", "timeout", "timed out", "fetch", "unreachable")
_AUTH_WORDS = ("jwt", "auth", "token", "401", "403", "permission")


def _classify(exc: BaseException) -> str:
    if isinstance(exc, AuthRequired):
        return "auth"
    if isinstance(exc, PersistenceFailed) and exc.last_error is not None:
        return _classify(exc.last_error)
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return "network"
    text = str(exc).lower()
    if any(word in text for word in _NETWORK_WORDS):
        return "network"
    if any(word in text for word in _AUTH_WORDS):
        return "auth"
    return "server"


_HINTS = {
    "network": "Check your internet connection and try again.",
    "auth": "Your session may have expired. Please sign in again.",
    "server": "The server had a problem. Please try again in a moment.",
}


def describe_error(exc: BaseException) -> str:
    """Render an error as a message with a troubleshooting hint."""
    if isinstance(exc, InsufficientQuestions):
        return f"{exc} Try another subject or an easier mode."
    if isinstance(exc, PersistenceFailed):
        return f"Failed to save exam results. {_HINTS[_classify(exc)]}"
    message = str(exc).rstrip(".") or exc.__class__.__name__
    return f"{message}. {_HINTS[_classify(exc)]}"
