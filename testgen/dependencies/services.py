"""
Service dependencies for FastAPI routes.

The parser registry, LLM factory, exporter and Moodle client are built once in
the application lifespan and stored on ``app.state``; routes receive them
through these dependencies so tests can swap them via
``app.dependency_overrides``.
"""
from __future__ import annotations

from fastapi import Request

from testgen.exceptions import MoodleNotConfiguredError
from testgen.services.document_parser import DocumentParserFactory
from testgen.services.llm_factory import LLMFactory
from testgen.services.moodle_client import MoodleClient
from testgen.services.moodle_exporter import MoodleXMLExporter


def get_parser_factory(request: Request) -> DocumentParserFactory:
    return request.app.state.parser_factory


def get_llm_factory(request: Request) -> LLMFactory:
    return request.app.state.llm_factory


def get_exporter(request: Request) -> MoodleXMLExporter:
    return request.app.state.exporter


def get_moodle_client(request: Request) -> MoodleClient:
    """The configured Moodle client; absent URL or token surfaces as 503."""
    moodle_client = getattr(request.app.state, "moodle_client", None)
    if moodle_client is None:
        raise MoodleNotConfiguredError()
    return moodle_client
