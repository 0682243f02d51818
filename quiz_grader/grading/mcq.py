"""
Multiple-choice grading by exact match after normalization.

Students submit options in many shapes ("A", "a)", "Option A", " 2 ");
both sides are reduced to the bare option token before comparing.
"""

import re
from typing import Any

from quiz_grader.models import Question, QuestionGrade

# "Option A", "choice: b", "OPTION-3"
_PREFIX_PATTERN = re.compile(r"^(?:OPTION|CHOICE)\b[\s.:)\-]*")
_LETTER_PATTERN = re.compile(r"^([A-D])")
_NUMBER_PATTERN = re.compile(r"^(\d+)")


def normalize_mcq_answer(answer: Any) -> str:
    """
    Reduce an MCQ answer to its option token.

    Args:
        answer: Raw answer, as typed by a student or stored on the question.

    Returns:
        The leading option letter (A-D), else the leading digit run,
        else the whole trimmed, uppercased answer. Empty for no answer.
    """
    if answer is None:
        return ""

    normalized = str(answer).strip().upper()
    if not normalized:
        return ""

    while True:
        stripped = _PREFIX_PATTERN.sub("", normalized, count=1)
        if not stripped or stripped == normalized:
            break
        normalized = stripped

    letter_match = _LETTER_PATTERN.match(normalized)
    if letter_match:
        return letter_match.group(1)

    number_match = _NUMBER_PATTERN.match(normalized)
    if number_match:
        return number_match.group(1)

    return normalized


def grade_mcq(question: Question, student_answer: str) -> QuestionGrade:
    """Grade an MCQ answer. Full marks or nothing; there is no partial credit."""
    is_correct = normalize_mcq_answer(student_answer) == normalize_mcq_answer(question.answer)

    return QuestionGrade(
        is_correct=is_correct,
        marks=question.marks if is_correct else 0.0,
        explanation=(
            "Correct answer selected."
            if is_correct
            else f"Incorrect. Expected: {question.answer}, Got: {student_answer}"
        ),
        graded_by="mcq",
    )
