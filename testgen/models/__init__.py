"""Domain and API schema models for testgen."""
from testgen.models.schemas import (
    QuestionType,
    Difficulty,
    GenerationParams,
    GeneratedAnswer,
    GeneratedQuestion,
    ExportableAnswer,
    ExportableQuestion,
    ParsedDocumentResponse,
    SupportedTypesResponse,
    GenerateTestRequest,
    GenerateTestResponse,
    ProvidersResponse,
    ExportQuestionRequest,
    ExportMoodleRequest,
    SyncMoodleRequest,
    MoodleSyncResponse,
    MoodleCourseResponse,
    MoodleCoursesResponse,
    MoodleConnectionResponse,
    HealthCheckResponse,
)

__all__ = [
    # Domain values
    "QuestionType",
    "Difficulty",
    "GenerationParams",
    "GeneratedAnswer",
    "GeneratedQuestion",
    "ExportableAnswer",
    "ExportableQuestion",
    # API schemas
    "ParsedDocumentResponse",
    "SupportedTypesResponse",
    "GenerateTestRequest",
    "GenerateTestResponse",
    "ProvidersResponse",
    "ExportQuestionRequest",
    "ExportMoodleRequest",
    "SyncMoodleRequest",
    "MoodleSyncResponse",
    "MoodleCourseResponse",
    "MoodleCoursesResponse",
    "MoodleConnectionResponse",
    "HealthCheckResponse",
]
