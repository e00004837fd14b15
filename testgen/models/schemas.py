"""
Pydantic schemas for domain values and request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, List, Optional, Tuple
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4


# Enums
class QuestionType(str, Enum):
    """Question types understood by generation and export."""

    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class Difficulty(str, Enum):
    """Requested difficulty of generated questions."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# Generation Schemas
class GenerationParams(BaseModel):
    """Input to a question-generation strategy."""

    text: str
    num_questions: int = Field(..., ge=1, le=50)
    difficulty: Optional[Difficulty] = None
    question_types: List[QuestionType] = Field(default_factory=list)
    language: Optional[str] = None


class GeneratedAnswer(BaseModel):
    """One answer option produced by a provider."""

    text: str
    is_correct: bool = False


class GeneratedQuestion(BaseModel):
    """A question produced by a provider; transient, never persisted here."""

    question_text: str
    question_type: QuestionType
    difficulty: Optional[Difficulty] = None
    answers: List[GeneratedAnswer] = Field(default_factory=list)
    explanation: str = ""


# Export Schemas
class ExportableAnswer(BaseModel):
    """A stored answer handed to the Moodle exporter."""

    text: str
    is_correct: bool = False

    model_config = ConfigDict(from_attributes=True)


class ExportableQuestion(BaseModel):
    """
    A stored question handed to the Moodle exporter.

    ``question_type`` stays a plain string: stored rows may carry a tag the
    exporter does not know, and the exporter must reject it explicitly.
    """

    id: UUID = Field(default_factory=uuid4)
    question_text: str
    question_type: str
    points: float = 1.0

    model_config = ConfigDict(from_attributes=True)


# API Schemas
class ParsedDocumentResponse(BaseModel):
    """Schema for the text extracted from an uploaded document."""

    filename: str
    file_type: str
    text: str
    char_count: int


class SupportedTypesResponse(BaseModel):
    file_types: List[str]


class GenerateTestRequest(BaseModel):
    """Schema for a question-generation request."""

    text: str = Field(..., min_length=1)
    num_questions: int = Field(5, ge=1, le=50)
    difficulty: Optional[Difficulty] = None
    question_types: List[QuestionType] = Field(default_factory=list)
    language: Optional[str] = None
    llm_provider: Optional[str] = None


class GenerateTestResponse(BaseModel):
    provider: str
    questions: List[GeneratedQuestion]


class ProvidersResponse(BaseModel):
    """Known provider names and the ones that have credentials configured."""

    known: List[str]
    configured: List[str]
    default: str


class ExportQuestionRequest(BaseModel):
    """One question with its answers, as sent to the export endpoint."""

    id: UUID = Field(default_factory=uuid4)
    question_text: str
    question_type: str
    points: float = Field(1.0, ge=0)
    answers: List[ExportableAnswer] = Field(default_factory=list)


class ExportMoodleRequest(BaseModel):
    """Schema for a Moodle XML export request."""

    title: str = Field("Quiz", max_length=255)
    questions: List[ExportQuestionRequest] = Field(..., min_length=1)

    def exportable(self) -> Tuple[List[ExportableQuestion], Dict[UUID, List[ExportableAnswer]]]:
        """Split into the exporter's question list and answers-by-question-id map."""
        questions = [
            ExportableQuestion(
                id=q.id,
                question_text=q.question_text,
                question_type=q.question_type,
                points=q.points,
            )
            for q in self.questions
        ]
        return questions, {q.id: q.answers for q in self.questions}


# Moodle
class SyncMoodleRequest(ExportMoodleRequest):
    """Export request that is uploaded to a Moodle course instead of downloaded."""

    course_name: str = Field(..., min_length=1)


class MoodleSyncResponse(BaseModel):
    message: str
    moodle_id: str
    course_id: str


class MoodleCourseResponse(BaseModel):
    id: str
    name: str
    short_name: str


class MoodleCoursesResponse(BaseModel):
    courses: List[MoodleCourseResponse]


class MoodleConnectionResponse(BaseModel):
    """Result of a Moodle connectivity check; ``error`` is set only when disconnected."""

    connected: bool
    message: str = ""
    error: str = ""


class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    llm_providers: List[str]
    moodle: str
    timestamp: datetime
