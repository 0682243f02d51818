"""
Pydantic models for the Quiz Grader system.

These models define the schemas for:
- Quiz questions and their kinds
- Per-question and per-attempt grading results
- Observability snapshots
- Student attempts and their anti-cheat log

Result models are frozen: a grading result is computed once per submission
and never modified afterwards.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_marks(value: float) -> float:
    """Round a mark or percentage to two decimal places."""
    return round(float(value), 2)


# ==============================================================================
# Question Models
# ==============================================================================


class QuestionKind(str, Enum):
    """Kind of quiz question, which decides how it is graded."""

    MCQ = "mcq"
    MULTIPLE_CHOICE = "multiple-choice"
    SHORT_ANSWER = "short-answer"
    DESCRIPTIVE = "descriptive"

    @classmethod
    def parse(cls, value: Any) -> "QuestionKind":
        """Map a raw type string to a kind; anything unrecognized is MCQ."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MCQ

    @property
    def is_descriptive(self) -> bool:
        """Whether answers of this kind are free text."""
        return self in (QuestionKind.SHORT_ANSWER, QuestionKind.DESCRIPTIVE)


class Question(BaseModel):
    """
    A single quiz question as stored on the quiz.

    Read-only to the grader. Accepts the field names used by stored quiz
    documents (`_id`, `question`, `questionText`) as well as the canonical ones.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("id", "_id"),
        description="Opaque question identifier",
    )

    text: str = Field(
        default="",
        validation_alias=AliasChoices("text", "question", "questionText"),
        description="Prompt shown to the student",
    )

    type: str = Field(
        default=QuestionKind.MCQ.value,
        description="Raw question type; see QuestionKind",
    )

    options: tuple[str, ...] = Field(
        default=(),
        description="Ordered choices, meaningful only for MCQ kinds",
    )

    answer: str = Field(
        default="",
        description="Expected answer: an option token for MCQ, free text otherwise",
    )

    marks: float = Field(
        default=1.0,
        gt=0,
        description="Maximum achievable score for this question",
    )

    explanation: str | None = Field(
        default=None,
        description="Optional rationale shown after grading",
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Stored documents sometimes hold numeric or ObjectId ids."""
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("answer", mode="before")
    @classmethod
    def coerce_answer(cls, v: Any) -> str:
        """Answers may be stored as numbers or nulls."""
        return "" if v is None else str(v)

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> str:
        """A missing type is an MCQ."""
        return QuestionKind.MCQ.value if v is None else str(v)

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, v: Any) -> Any:
        """Options may arrive as null or as non-string values."""
        if v is None:
            return ()
        return tuple(str(o) for o in v)

    @field_validator("marks", mode="before")
    @classmethod
    def default_marks(cls, v: Any) -> Any:
        """Absent or zero marks default to 1."""
        return 1.0 if v in (None, "", 0) else v

    @property
    def kind(self) -> QuestionKind:
        """Parsed question kind."""
        return QuestionKind.parse(self.type)


# ==============================================================================
# Grading Result Models
# ==============================================================================


class AIGradingResult(BaseModel):
    """Validated verdict returned by the external grading model."""

    model_config = ConfigDict(frozen=True)

    is_correct: bool
    marks: float = Field(..., ge=0)
    explanation: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    key_points_found: tuple[str, ...] = ()
    key_points_missing: tuple[str, ...] = ()


class QuestionGrade(BaseModel):
    """
    Outcome of grading one answer, before it is joined with question data.

    Produced by the MCQ, AI and similarity graders.
    """

    model_config = ConfigDict(frozen=True)

    is_correct: bool
    marks: float = Field(..., ge=0)
    explanation: str
    graded_by: str
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    similarity_score: float | None = Field(default=None, ge=0.0, le=1.0)
    key_points_found: tuple[str, ...] = ()
    key_points_missing: tuple[str, ...] = ()


class GradedAnswer(BaseModel):
    """
    The grading result for a single question.

    Carries the identifying question fields, the student's answer and the
    awarded marks.
    """

    model_config = ConfigDict(frozen=True)

    question_id: str | None = None
    question: str = ""
    type: str = QuestionKind.MCQ.value
    options: tuple[str, ...] = ()
    student_answer: str = ""
    correct_answer: str = ""
    marks: float = Field(..., ge=0, description="Marks awarded")
    max_marks: float = Field(..., ge=0, description="Maximum marks for the question")
    is_correct: bool = False
    explanation: str = ""
    graded_by: str = Field(
        default="mcq",
        description="One of: mcq, ai, similarity, none, manual-review",
    )
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    similarity_score: float | None = Field(default=None, ge=0.0, le=1.0)
    key_points_found: tuple[str, ...] = ()
    key_points_missing: tuple[str, ...] = ()

    @model_validator(mode="after")
    def validate_marks_range(self) -> "GradedAnswer":
        """Ensure awarded marks don't exceed the question's marks."""
        if self.marks > self.max_marks:
            raise ValueError(
                f"Awarded marks ({self.marks}) cannot exceed max marks ({self.max_marks})"
            )
        return self

    @classmethod
    def from_grade(
        cls, question: Question, student_answer: str, grade: QuestionGrade
    ) -> "GradedAnswer":
        """Join a grader's verdict with the question it belongs to."""
        return cls(
            question_id=question.id,
            question=question.text,
            type=question.type,
            options=question.options,
            student_answer=student_answer,
            correct_answer=question.answer,
            max_marks=question.marks,
            **grade.model_dump(),
        )


class GradingResult(BaseModel):
    """
    Complete grading result for one quiz attempt.

    Totals are derived from the graded answers so they can never disagree.
    """

    model_config = ConfigDict(frozen=True)

    graded_answers: tuple[GradedAnswer, ...] = Field(
        default=(),
        description="Per-question results, aligned to the quiz's questions",
    )

    processing_time_ms: float = Field(
        default=0.0,
        ge=0,
        description="Wall-clock time spent grading",
    )

    graded_at: datetime = Field(
        default_factory=_utcnow,
        description="Timestamp when grading was completed",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_questions(self) -> int:
        """Return the number of graded questions."""
        return len(self.graded_answers)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_marks(self) -> float:
        """Sum of awarded marks, rounded to two decimals."""
        return round_marks(sum(a.marks for a in self.graded_answers))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def max_marks(self) -> float:
        """Sum of the questions' maximum marks."""
        return round_marks(sum(a.max_marks for a in self.graded_answers))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percentage(self) -> float:
        """Overall percentage score; 0 when there are no marks to earn."""
        if self.max_marks == 0:
            return 0.0
        return round_marks(self.total_marks / self.max_marks * 100)


# ==============================================================================
# Observability Models
# ==============================================================================


class MetricsSnapshot(BaseModel):
    """Point-in-time copy of the grading counters."""

    model_config = ConfigDict(frozen=True)

    total_graded: int = 0
    successful_gradings: int = 0
    failed_gradings: int = 0
    fallback_used: int = 0
    average_response_time: float = Field(default=0.0, description="Milliseconds")


# ==============================================================================
# Attempt Models
# ==============================================================================


class AttemptStatus(str, Enum):
    """Lifecycle of a student's quiz attempt."""

    PENDING = "pending"
    STARTED = "started"
    SUBMITTED = "submitted"
    GRADED = "graded"

    @property
    def is_closed(self) -> bool:
        """Closed attempts accept no more answers or warnings."""
        return self in (AttemptStatus.SUBMITTED, AttemptStatus.GRADED)


class CheatLog(BaseModel):
    """One anti-cheat violation reported by the quiz page."""

    model_config = ConfigDict(frozen=True)

    at: datetime = Field(default_factory=_utcnow)
    reason: str = "violation"


class StudentInfo(BaseModel):
    """Identity details a student enters before starting."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    usn: str = Field(..., min_length=1)
    branch: str = Field(..., min_length=1)
    year: str = Field(..., min_length=1)
    semester: str = Field(..., min_length=1)


class QuizAttempt(BaseModel):
    """
    A student's attempt at a quiz, reached through a unique link token.

    Mutable: the attempt service moves it through its lifecycle and the
    caller persists it.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    quiz_id: str
    token: str
    student_email: str | None = None
    student: StudentInfo | None = None
    status: AttemptStatus = AttemptStatus.PENDING
    warning_count: int = Field(default=0, ge=0)
    is_cheated: bool = False
    cheat_logs: list[CheatLog] = Field(default_factory=list)
    started_at: datetime | None = None
    submitted_at: datetime | None = None
    graded_at: datetime | None = None
    last_warning_at: datetime | None = None
    result: GradingResult | None = None


class StudentQuestion(BaseModel):
    """A question as shown to a student: no expected answer, no marks."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    type: str = QuestionKind.MCQ.value
    text: str = ""
    options: tuple[str, ...] = ()

    @classmethod
    def from_question(cls, question: Question) -> "StudentQuestion":
        return cls(id=question.id, type=question.type, text=question.text, options=question.options)


class AttemptView(BaseModel):
    """
    What a student's quiz link resolves to.

    Once the attempt is closed only `already_submitted` is set; the
    questions are withheld.
    """

    model_config = ConfigDict(frozen=True)

    already_submitted: bool = False
    attempt_id: str | None = None
    quiz_id: str | None = None
    questions: tuple[StudentQuestion, ...] = ()
    student: StudentInfo | None = None
    student_email: str | None = None
    has_started: bool = False
    warning_count: int = 0
    is_cheated: bool = False


class ShareOutcome(BaseModel):
    """Result of issuing quiz links to a batch of students."""

    created: list[QuizAttempt] = Field(default_factory=list)
    reissued: list[QuizAttempt] = Field(default_factory=list)
    already_shared: list[QuizAttempt] = Field(default_factory=list)
    invalid: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def links(self) -> list[QuizAttempt]:
        """Attempts whose link should be sent out now."""
        return self.created + self.reissued


class QuizStats(BaseModel):
    """Attempt counts and average percentage for one quiz."""

    model_config = ConfigDict(frozen=True)

    quiz_id: str
    attempt_count: int = 0
    submitted_count: int = 0
    average_score: float = Field(default=0.0, description="Mean percentage over submitted attempts")
