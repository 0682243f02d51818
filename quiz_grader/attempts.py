"""
Student attempt lifecycle.

An instructor shares a unique link per student. The student opens the link,
starts the attempt, the quiz page reports anti-cheat violations, and the
attempt ends either by submission (graded through the engine) or by reaching
the warning threshold (auto-submitted with zero marks). Persisting attempts
is up to the caller.
"""

import logging
import re
import secrets
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any, NamedTuple

from quiz_grader.grading.engine import GradingEngine, InputShapeError, parse_questions
from quiz_grader.models import (
    AttemptStatus,
    AttemptView,
    CheatLog,
    GradedAnswer,
    GradingResult,
    Question,
    QuizAttempt,
    QuizStats,
    ShareOutcome,
    StudentInfo,
    StudentQuestion,
    round_marks,
)

logger = logging.getLogger(__name__)

AUTO_SUBMIT_EXPLANATION = "Attempt auto-submitted after repeated violations."

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class AttemptStateError(Exception):
    """Raised when an attempt can't make the requested transition."""

    def __init__(self, message: str, attempt_id: str, status: AttemptStatus):
        self.attempt_id = attempt_id
        self.status = status
        super().__init__(message)


class AttemptNotFoundError(LookupError):
    """Raised when no attempt matches a link token."""


class FlagOutcome(NamedTuple):
    """Result of reporting one violation."""

    warning_count: int
    auto_submitted: bool


class AttemptService:
    """
    Moves quiz attempts through pending -> started -> submitted/graded.

    Args:
        engine: Grading engine used on submission.
        warning_threshold: Violations after which the attempt is auto-submitted.
            Defaults to the engine's configured threshold.
    """

    def __init__(self, engine: GradingEngine, warning_threshold: int | None = None):
        if warning_threshold is None:
            warning_threshold = engine.settings.warning_threshold
        if warning_threshold < 1:
            raise ValueError("warning_threshold must be at least 1")
        self._engine = engine
        self._warning_threshold = warning_threshold

    @property
    def warning_threshold(self) -> int:
        return self._warning_threshold

    def create(self, quiz_id: str, student_email: str | None = None) -> QuizAttempt:
        """Create a pending attempt with a fresh link token."""
        return QuizAttempt(
            quiz_id=quiz_id,
            token=_new_token(),
            student_email=student_email.lower() if student_email else None,
        )

    def share(
        self,
        quiz_id: str,
        student_emails: Sequence[str | None],
        existing: Iterable[QuizAttempt] = (),
        force_resend: bool = False,
    ) -> ShareOutcome:
        """
        Issue quiz links to a batch of students.

        Emails are trimmed, lowercased and de-duplicated. A student who already
        has an attempt on this quiz keeps it; with force_resend its token is
        replaced so the old link stops working.

        Args:
            quiz_id: The quiz being shared.
            student_emails: Addresses as entered by the instructor.
            existing: Attempts already stored, for any quiz.
            force_resend: Reissue tokens for students who were already sent a link.

        Returns:
            ShareOutcome sorting every address into created, reissued,
            already shared or invalid.

        Raises:
            ValueError: If no address was given at all.
        """
        if isinstance(student_emails, str) or not any(
            str(raw or "").strip() for raw in student_emails
        ):
            raise ValueError("student_emails must be a non-empty list of addresses")

        by_email = {
            attempt.student_email: attempt
            for attempt in existing
            if attempt.quiz_id == quiz_id and attempt.student_email
        }
        outcome = ShareOutcome()
        seen: set[str] = set()

        for raw in student_emails:
            email = str(raw or "").strip().lower()
            if not _EMAIL_PATTERN.match(email):
                outcome.invalid.append("" if raw is None else str(raw))
                continue
            if email in seen:
                continue
            seen.add(email)

            attempt = by_email.get(email)
            if attempt is None:
                outcome.created.append(self.create(quiz_id, email))
            elif force_resend:
                attempt.token = _new_token()
                outcome.reissued.append(attempt)
            else:
                outcome.already_shared.append(attempt)

        logger.info(
            "Shared quiz %s: %d new, %d reissued, %d already shared, %d invalid",
            quiz_id,
            len(outcome.created),
            len(outcome.reissued),
            len(outcome.already_shared),
            len(outcome.invalid),
        )
        return outcome

    @staticmethod
    def find(attempts: Iterable[QuizAttempt], token: str) -> QuizAttempt:
        """
        Look up the attempt a quiz link points to.

        Raises:
            AttemptNotFoundError: If the token is empty or matches nothing.
        """
        if token:
            for attempt in attempts:
                if attempt.token == token:
                    return attempt
        raise AttemptNotFoundError("Invalid or expired link")

    def view(
        self, attempt: QuizAttempt, questions: Sequence[Question | dict[str, Any]]
    ) -> AttemptView:
        """
        Build the student-facing view of an attempt.

        Expected answers and marks are never included. A closed attempt
        only reports that it was already submitted.

        Raises:
            InputShapeError: If a question is invalid.
        """
        if attempt.status.is_closed:
            return AttemptView(
                already_submitted=True, attempt_id=attempt.id, quiz_id=attempt.quiz_id
            )

        return AttemptView(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            questions=tuple(StudentQuestion.from_question(q) for q in parse_questions(questions)),
            student=attempt.student,
            student_email=attempt.student_email,
            has_started=attempt.status is AttemptStatus.STARTED,
            warning_count=attempt.warning_count,
            is_cheated=attempt.is_cheated,
        )

    def start(self, attempt: QuizAttempt, student: StudentInfo | dict[str, Any]) -> QuizAttempt:
        """
        Record the student's details and mark the attempt started.

        Raises:
            AttemptStateError: If the attempt was already submitted.
        """
        self._ensure_open(attempt, "start")
        attempt.student = (
            student if isinstance(student, StudentInfo) else StudentInfo.model_validate(student)
        )
        attempt.status = AttemptStatus.STARTED
        attempt.started_at = _utcnow()
        logger.info("Attempt %s started for quiz %s", attempt.id, attempt.quiz_id)
        return attempt

    def flag(
        self,
        attempt: QuizAttempt,
        questions: Sequence[Question | dict[str, Any]],
        reason: str | None = None,
    ) -> FlagOutcome:
        """
        Record a violation, auto-submitting once the threshold is reached.

        Args:
            attempt: The attempt being monitored.
            questions: The quiz's questions, needed for the zero-mark result.
            reason: What the quiz page detected.

        Returns:
            FlagOutcome with the new warning count.

        Raises:
            AttemptStateError: If the attempt was already submitted.
            InputShapeError: If a question is invalid. The attempt is left untouched.
        """
        self._ensure_open(attempt, "flag")
        parsed = parse_questions(questions)

        now = _utcnow()
        warning_count = attempt.warning_count + 1
        auto_submit = warning_count >= self._warning_threshold
        zero_result = self._zero_result(parsed) if auto_submit else None

        attempt.warning_count = warning_count
        attempt.last_warning_at = now
        attempt.cheat_logs.append(CheatLog(at=now, reason=reason or "violation"))
        logger.warning(
            "Attempt %s flagged (%d/%d): %s",
            attempt.id,
            warning_count,
            self._warning_threshold,
            reason or "violation",
        )

        if zero_result is None:
            return FlagOutcome(warning_count, False)

        attempt.is_cheated = True
        attempt.result = zero_result
        attempt.status = AttemptStatus.SUBMITTED
        attempt.submitted_at = now
        attempt.graded_at = now
        logger.warning("Attempt %s auto-submitted after %d warnings", attempt.id, warning_count)
        return FlagOutcome(warning_count, True)

    async def submit(
        self,
        attempt: QuizAttempt,
        questions: Sequence[Question | dict[str, Any]],
        answers: Sequence[str | None],
        use_ai: bool | None = None,
    ) -> GradingResult:
        """
        Grade the submitted answers and close the attempt.

        Unanswered trailing questions count as empty answers.

        Raises:
            AttemptStateError: If the attempt was already submitted.
            InputShapeError: If there are more answers than questions.
        """
        self._ensure_open(attempt, "submit")

        if len(answers) > len(questions):
            raise InputShapeError(
                f"Got {len(answers)} answers for {len(questions)} questions"
            )
        padded = list(answers) + [""] * (len(questions) - len(answers))

        submitted_at = _utcnow()
        result = await self._engine.grade_quiz_attempt(questions, padded, use_ai=use_ai)

        attempt.result = result
        attempt.status = AttemptStatus.GRADED
        attempt.submitted_at = submitted_at
        attempt.graded_at = result.graded_at
        return result

    @staticmethod
    def stats(quiz_id: str, attempts: Iterable[QuizAttempt]) -> QuizStats:
        """
        Summarize a quiz's attempts.

        The average is the mean percentage over submitted attempts, 0 when
        none have been submitted.
        """
        attempt_count = 0
        submitted_count = 0
        total_percentage = 0.0
        for attempt in attempts:
            if attempt.quiz_id != quiz_id:
                continue
            attempt_count += 1
            if attempt.status.is_closed:
                submitted_count += 1
                if attempt.result is not None:
                    total_percentage += attempt.result.percentage

        return QuizStats(
            quiz_id=quiz_id,
            attempt_count=attempt_count,
            submitted_count=submitted_count,
            average_score=round_marks(total_percentage / submitted_count) if submitted_count else 0.0,
        )

    @staticmethod
    def _zero_result(questions: Sequence[Question]) -> GradingResult:
        return GradingResult(
            graded_answers=tuple(
                GradedAnswer(
                    question_id=q.id,
                    question=q.text,
                    type=q.type,
                    options=q.options,
                    correct_answer=q.answer,
                    marks=0.0,
                    max_marks=q.marks,
                    explanation=AUTO_SUBMIT_EXPLANATION,
                    graded_by="none",
                )
                for q in questions
            )
        )

    @staticmethod
    def _ensure_open(attempt: QuizAttempt, action: str) -> None:
        if attempt.status.is_closed:
            raise AttemptStateError(
                f"Cannot {action} attempt {attempt.id}: already {attempt.status.value}",
                attempt_id=attempt.id,
                status=attempt.status,
            )


def _new_token() -> str:
    return secrets.token_urlsafe(24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
