"""
Grading engine - the core orchestrator.

Grades every question of a quiz attempt concurrently, isolates per-question
failures, aggregates the marks and reports to the metrics collaborator.
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from quiz_grader.config import Settings, get_settings
from quiz_grader.grading.ai_grader import AIGrader
from quiz_grader.grading.descriptive import DescriptiveGrader
from quiz_grader.grading.llm_client import LLMClient
from quiz_grader.grading.mcq import grade_mcq
from quiz_grader.metrics import GradingMetrics, MetricsSink
from quiz_grader.models import GradedAnswer, GradingResult, Question

logger = logging.getLogger(__name__)

MANUAL_REVIEW_EXPLANATION = "Auto-grading failed. Manual review required."
DEADLINE_EXPLANATION = "Grading did not finish in time. Manual review required."


class InputShapeError(ValueError):
    """Raised when questions and answers can't be paired up for grading."""


class PerQuestionGradingError(Exception):
    """Raised when grading one question fails unexpectedly."""

    def __init__(self, index: int, question_id: str | None, cause: Exception):
        self.index = index
        self.question_id = question_id
        self.cause = cause
        super().__init__(f"Grading question {index} ({question_id or 'no id'}) failed: {cause}")


def parse_questions(questions: Sequence[Question | dict[str, Any]]) -> list[Question]:
    """
    Coerce stored question documents to Question models.

    Raises:
        InputShapeError: If an entry is not a valid question.
    """
    parsed: list[Question] = []
    for i, question in enumerate(questions):
        if isinstance(question, Question):
            parsed.append(question)
            continue
        if not isinstance(question, dict):
            raise InputShapeError(
                f"questions[{i}] must be a question object, got {type(question).__name__}"
            )
        try:
            parsed.append(Question.model_validate(question))
        except ValidationError as e:
            raise InputShapeError(f"questions[{i}] is not a valid question: {e}") from e
    return parsed


class GradingEngine:
    """
    Main grading engine for quiz attempts.

    Dispatches each question to the MCQ or descriptive grader. A question
    whose grading fails gets zero marks and a manual-review note; the rest
    of the attempt is graded normally.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        metrics: MetricsSink | None = None,
        llm_client: LLMClient | None = None,
    ):
        """
        Initialize the grading engine.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
            metrics: Observability collaborator. A private GradingMetrics if not provided.
            llm_client: LLM client for AI grading. Built from settings when an
                API key is configured.
        """
        self._settings = settings or get_settings()
        self._metrics = metrics if metrics is not None else GradingMetrics()

        if llm_client is None and self._settings.ai_enabled:
            llm_client = LLMClient(self._settings)
        self._llm_client = llm_client

        ai_grader = AIGrader(llm_client, self._settings) if llm_client is not None else None
        self._descriptive_grader = DescriptiveGrader(self._metrics, ai_grader, self._settings)

        if ai_grader is None:
            logger.warning("No LLM API key configured; descriptive answers use similarity grading only")
        else:
            logger.info("Grading engine initialized with model %s", self._settings.llm_model)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def metrics(self) -> MetricsSink:
        return self._metrics

    @property
    def ai_enabled(self) -> bool:
        return self._descriptive_grader.ai_available

    async def grade_quiz_attempt(
        self,
        questions: Sequence[Question | dict[str, Any]],
        student_answers: Sequence[str | None],
        use_ai: bool | None = None,
    ) -> GradingResult:
        """
        Grade all answers of one attempt.

        Args:
            questions: The quiz's questions, as models or stored documents.
            student_answers: One answer per question, in the same order.
            use_ai: Pass False to grade descriptive answers by similarity only.

        Returns:
            GradingResult with one graded answer per question.

        Raises:
            InputShapeError: If the inputs aren't equal-length sequences of
                questions and answers.
        """
        start = time.perf_counter()

        try:
            parsed_questions, answers = self._validate_inputs(questions, student_answers)
        except InputShapeError:
            self._metrics.record_attempt(False, self._elapsed_ms(start))
            raise

        tasks = [
            asyncio.ensure_future(self._grade_question(i, question, answer, use_ai))
            for i, (question, answer) in enumerate(zip(parsed_questions, answers))
        ]

        if tasks:
            deadline = self._settings.attempt_timeout_ms
            _, pending = await asyncio.wait(
                tasks, timeout=deadline / 1000 if deadline else None
            )
            if pending:
                logger.error(
                    "Attempt grading deadline of %d ms reached with %d question(s) unfinished",
                    deadline,
                    len(pending),
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        graded_answers = [
            self._collect(i, task, question, answer)
            for i, (task, question, answer) in enumerate(zip(tasks, parsed_questions, answers))
        ]

        elapsed_ms = self._elapsed_ms(start)
        result = GradingResult(graded_answers=tuple(graded_answers), processing_time_ms=elapsed_ms)
        self._metrics.record_attempt(True, elapsed_ms)

        logger.info(
            "Graded %d question(s): %s/%s (%.2f%%) in %.0f ms",
            result.total_questions,
            result.total_marks,
            result.max_marks,
            result.percentage,
            elapsed_ms,
        )
        return result

    async def _grade_question(
        self, index: int, question: Question, student_answer: str, use_ai: bool | None
    ) -> GradedAnswer:
        """Grade one question, wrapping any failure with its position."""
        try:
            if question.kind.is_descriptive:
                grade = await self._descriptive_grader.grade(question, student_answer, use_ai)
            else:
                grade = grade_mcq(question, student_answer)
            return GradedAnswer.from_grade(question, student_answer, grade)
        except Exception as e:
            raise PerQuestionGradingError(index, question.id, e) from e

    def _collect(
        self, index: int, task: "asyncio.Future[GradedAnswer]", question: Question, answer: str
    ) -> GradedAnswer:
        """Turn a finished task into a graded answer, substituting a placeholder on failure."""
        if task.cancelled():
            return self._manual_review(question, answer, DEADLINE_EXPLANATION)

        error = task.exception()
        if error is not None:
            logger.error("Error grading question %d", index, exc_info=error)
            return self._manual_review(question, answer, MANUAL_REVIEW_EXPLANATION)

        return task.result()

    @staticmethod
    def _manual_review(question: Question, answer: str, explanation: str) -> GradedAnswer:
        return GradedAnswer(
            question_id=question.id,
            question=question.text,
            type=question.type,
            options=question.options,
            student_answer=answer,
            correct_answer=question.answer,
            marks=0.0,
            max_marks=question.marks,
            is_correct=False,
            explanation=explanation,
            graded_by="manual-review",
        )

    @staticmethod
    def _validate_inputs(
        questions: Any, student_answers: Any
    ) -> tuple[list[Question], list[str]]:
        """
        Check the inputs pair up and coerce them to models and strings.

        Raises:
            InputShapeError: On non-sequences, length mismatch or invalid questions.
        """
        for name, value in (("questions", questions), ("studentAnswers", student_answers)):
            if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
                raise InputShapeError(f"{name} must be a sequence, got {type(value).__name__}")

        if len(questions) != len(student_answers):
            raise InputShapeError(
                f"Questions and answers must have the same length "
                f"({len(questions)} questions, {len(student_answers)} answers)"
            )

        answers = ["" if answer is None else str(answer) for answer in student_answers]
        return parse_questions(questions), answers

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000

    async def health_check(self) -> bool:
        """
        Check if the grading engine can reach its LLM.

        Returns:
            True if the LLM API is reachable, False if unreachable or unconfigured.
        """
        if self._llm_client is None:
            return False
        return await self._llm_client.health_check()
