"""
Prompt builder for descriptive answer grading.

Constructs prompts that ask the model to:
- Compare the student's answer with the expected answer
- Award fractional marks for partial credit
- Reply with a single strict JSON object
"""

from quiz_grader.models import Question


def format_marks(marks: float) -> str:
    """Render marks without a trailing .0 for whole numbers."""
    return f"{marks:g}"


class PromptBuilder:
    """
    Builds grading prompts for one descriptive question at a time.

    The prompts are designed to:
    1. Judge conceptual accuracy, not phrasing
    2. Keep marks within the question's maximum
    3. Produce a JSON object the response parser can validate
    """

    SYSTEM_PROMPT = """You are an expert educational evaluator. Grade the student's answer objectively and fairly.

RULES:
1. Compare the student's answer against the expected answer for the given question.
2. Be lenient with phrasing but strict with conceptual accuracy.
3. Award partial credit when some, but not all, key points are present.
4. Never award more marks than the question is worth.

OUTPUT RULES:
- Your output MUST be a single valid JSON object matching the exact format specified.
- Do not add any text before or after the JSON."""

    @staticmethod
    def build_grading_prompt(question: Question, student_answer: str) -> str:
        """
        Build the user prompt for grading one answer.

        Args:
            question: The question being graded.
            student_answer: The student's answer text.

        Returns:
            The formatted user prompt.
        """
        max_marks = format_marks(question.marks)
        explanation = f"\nExplanation: {question.explanation}" if question.explanation else ""

        prompt = f"""CONTEXT:
Question: "{question.text}"
Expected Answer: "{question.answer}"
Student's Answer: "{student_answer}"{explanation}

GRADING CRITERIA:
- Accuracy: Does the answer contain key concepts from the expected answer?
- Completeness: Are all important points addressed?
- Relevance: Is the answer directly related to the question?

OUTPUT FORMAT (respond with ONLY this JSON, no other text):
{{
  "isCorrect": <true or false>,
  "marks": <number between 0 and {max_marks}>,
  "confidence": <number between 0 and 1>,
  "feedback": "<brief constructive feedback>",
  "keyPointsFound": ["<key point present in the answer>"],
  "keyPointsMissing": ["<key point missing from the answer>"]
}}

Important: Marks can be fractional for partial credit."""

        return prompt

    @staticmethod
    def get_system_prompt() -> str:
        """Get the system prompt for descriptive grading."""
        return PromptBuilder.SYSTEM_PROMPT
