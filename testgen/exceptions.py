"""
Typed errors raised by the parsing, generation and export services.

Every error carries the identifying context of the failure (file type,
provider name, HTTP status, question id).  Credentials never appear in
messages.
"""
from __future__ import annotations

from typing import Optional
from uuid import UUID


class TestGenError(Exception):
    """Base class for all testgen service errors."""

    __test__ = False  # keep pytest from collecting this as a test class


# ---------------------------------------------------------------------------
# Document parsing
# ---------------------------------------------------------------------------

class UnsupportedFileTypeError(TestGenError):
    """No parser is registered for the requested file type."""

    def __init__(self, file_type: str) -> None:
        self.file_type = file_type
        super().__init__(f"unsupported file type: {file_type}")


class ParserIOError(TestGenError):
    """Reading the document stream failed."""

    def __init__(self, file_type: str, reason: str) -> None:
        self.file_type = file_type
        super().__init__(f"failed to read {file_type} document: {reason}")


class DocumentParseError(TestGenError):
    """The stream was read but is not a valid document of its type."""

    def __init__(self, file_type: str, reason: str) -> None:
        self.file_type = file_type
        super().__init__(f"cannot parse {file_type} document: {reason}")


# ---------------------------------------------------------------------------
# Question generation
# ---------------------------------------------------------------------------

class UnknownProviderError(TestGenError):
    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"unknown LLM provider: {provider}")


class ProviderNotConfiguredError(TestGenError):
    def __init__(self, provider: str, setting: str) -> None:
        self.provider = provider
        self.setting = setting
        super().__init__(f"{provider} is not configured ({setting} is empty)")


class ProviderError(TestGenError):
    """The remote provider answered with a non-success status or was unreachable."""

    def __init__(
        self,
        provider: str,
        status_code: Optional[int],
        detail: str = "",
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        self.detail = detail
        if status_code is None:
            message = f"{provider} request failed: {detail}"
        else:
            message = f"{provider} API error (status {status_code}): {detail}"
        super().__init__(message)


class MalformedProviderResponseError(TestGenError):
    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"malformed {provider} response: {reason}")


class GenerationTimeoutError(TestGenError):
    """The outbound provider call was aborted because it ran out of time."""

    def __init__(self, provider: str, timeout: Optional[float]) -> None:
        self.provider = provider
        self.timeout = timeout
        super().__init__(f"{provider} request cancelled after {timeout} s timeout")


class NoStrategySetError(TestGenError):
    def __init__(self) -> None:
        super().__init__("no LLM strategy set")


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

class ConversionError(TestGenError):
    """A question could not be converted to Moodle XML."""

    def __init__(self, question_id: UUID, reason: str) -> None:
        self.question_id = question_id
        self.reason = reason
        super().__init__(f"failed to convert question {question_id}: {reason}")


class MoodleNotConfiguredError(TestGenError):
    def __init__(self) -> None:
        super().__init__("Moodle web service URL or token is not configured")


class MoodleAPIError(TestGenError):
    def __init__(self, status_code: Optional[int], detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"moodle API returned status {status_code}: {detail}")
