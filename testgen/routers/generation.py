"""
Test generation and Moodle export endpoints.

GET  /providers       — known and configured LLM providers.
POST /generate        — generate questions from text with the chosen provider.
POST /export/moodle   — convert questions + answers to a Moodle XML download.
"""
from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from testgen.config import settings
from testgen.dependencies.services import get_exporter, get_llm_factory
from testgen.models.schemas import (
    ExportMoodleRequest,
    GenerateTestRequest,
    GenerateTestResponse,
    GenerationParams,
    ProvidersResponse,
)
from testgen.services.llm_factory import KNOWN_PROVIDERS, LLMFactory
from testgen.services.llm_strategy import LLMContext
from testgen.services.moodle_exporter import MoodleXMLExporter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(
    llm_factory: LLMFactory = Depends(get_llm_factory),
) -> ProvidersResponse:
    return ProvidersResponse(
        known=list(KNOWN_PROVIDERS),
        configured=llm_factory.available_providers(),
        default=settings.DEFAULT_LLM_PROVIDER,
    )


@router.post("/generate", response_model=GenerateTestResponse)
async def generate_test(
    request: GenerateTestRequest,
    llm_factory: LLMFactory = Depends(get_llm_factory),
) -> GenerateTestResponse:
    """
    Generate questions from *text*.

    Uses ``llm_provider`` when given, otherwise DEFAULT_LLM_PROVIDER.
    Provider failures are mapped to HTTP errors by the application's
    exception handler.
    """
    provider = request.llm_provider or settings.DEFAULT_LLM_PROVIDER
    context = LLMContext(llm_factory.create_strategy(provider))

    params = GenerationParams(
        text=request.text,
        num_questions=request.num_questions,
        difficulty=request.difficulty,
        question_types=request.question_types,
        language=request.language,
    )
    questions = await context.generate_questions(params)

    return GenerateTestResponse(provider=context.get_provider_name(), questions=questions)


@router.post(
    "/export/moodle",
    response_class=Response,
    responses={200: {"content": {"application/xml": {}}}},
)
async def export_moodle(
    request: ExportMoodleRequest,
    exporter: MoodleXMLExporter = Depends(get_exporter),
) -> Response:
    """Return the questions as a Moodle XML quiz file."""
    questions, answers = request.exportable()

    xml_content = exporter.export(request.title, questions, answers)

    return Response(
        content=xml_content,
        media_type="application/xml",
        headers={"Content-Disposition": f'attachment; filename="{_export_filename(request.title)}"'},
    )


def _export_filename(title: str) -> str:
    slug = re.sub(r"[^\w\-]+", "_", title, flags=re.ASCII).strip("_")
    return f"{slug or 'quiz'}_moodle.xml"
