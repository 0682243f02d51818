"""
Descriptive and short-answer grading.

Tries the AI grader first when one is available, and falls back to
word-overlap similarity against the expected answer.
"""

import logging

from quiz_grader.config import Settings, get_settings
from quiz_grader.grading.ai_grader import AIGrader, AIGradingError
from quiz_grader.grading.similarity import similarity
from quiz_grader.metrics import MetricsSink
from quiz_grader.models import Question, QuestionGrade

logger = logging.getLogger(__name__)

PARTIAL_CREDIT_FRACTION = 0.5


class DescriptiveGrader:
    """
    Grades free-text answers.

    Args:
        metrics: Receives a fallback count whenever AI grading gives up.
        ai_grader: AI grader, or None when no LLM is configured.
        settings: Configuration settings. Uses global settings if not provided.
    """

    def __init__(
        self,
        metrics: MetricsSink,
        ai_grader: AIGrader | None = None,
        settings: Settings | None = None,
    ):
        self._settings = settings or get_settings()
        self._ai_grader = ai_grader
        self._metrics = metrics

    @property
    def ai_available(self) -> bool:
        return self._ai_grader is not None

    async def grade(
        self, question: Question, student_answer: str, use_ai: bool | None = None
    ) -> QuestionGrade:
        """
        Grade a descriptive answer.

        Args:
            question: The question being answered.
            student_answer: The student's answer text.
            use_ai: Pass False to skip AI grading for this call.

        Returns:
            QuestionGrade from the AI grader, or from similarity scoring.
        """
        if not student_answer or not student_answer.strip():
            return QuestionGrade(
                is_correct=False,
                marks=0.0,
                explanation="No answer provided.",
                graded_by="none",
            )

        if self._ai_grader is not None and use_ai is not False:
            try:
                verdict = await self._ai_grader.grade(question, student_answer)
            except AIGradingError as e:
                logger.warning(
                    "AI grading failed for question %s, using similarity fallback: %s",
                    question.id,
                    e,
                )
                self._metrics.record_fallback()
            else:
                return QuestionGrade(
                    is_correct=verdict.is_correct,
                    marks=verdict.marks,
                    explanation=verdict.explanation,
                    graded_by="ai",
                    confidence=verdict.confidence,
                    key_points_found=verdict.key_points_found,
                    key_points_missing=verdict.key_points_missing,
                )

        return self.grade_with_similarity(question, student_answer)

    def grade_with_similarity(self, question: Question, student_answer: str) -> QuestionGrade:
        """Score an answer by its word overlap with the expected answer."""
        score = similarity(question.answer, student_answer)
        max_marks = question.marks

        if score >= self._settings.fallback_similarity_threshold:
            marks, is_correct = max_marks, True
            explanation = "Answer closely matches expected response."
        elif score >= self._settings.partial_credit_threshold:
            # Half credit is not "correct"
            marks, is_correct = max_marks * PARTIAL_CREDIT_FRACTION, False
            explanation = "Partially correct answer."
        else:
            marks, is_correct = 0.0, False
            explanation = "Answer does not match expected response."

        return QuestionGrade(
            is_correct=is_correct,
            marks=marks,
            explanation=explanation,
            graded_by="similarity",
            confidence=score,
            similarity_score=score,
        )
