"""
Shared fixtures for testgen backend tests.

No test touches the network: LLM providers and Moodle are served by
``httpx.MockTransport`` handlers, and the FastAPI app is driven in-process
through ``ASGITransport``.  The ASGI transport does not run the lifespan, so
the ``client`` fixture builds ``app.state`` itself.
"""
from __future__ import annotations

import json
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from testgen.main import app
from testgen.models.schemas import GenerationParams
from testgen.services.document_parser import build_parser_factory
from testgen.services.llm_factory import LLMFactory
from testgen.services.moodle_exporter import MoodleXMLExporter

Handler = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------------------
# Canned provider replies
# ---------------------------------------------------------------------------

SAMPLE_QUESTIONS: List[Dict[str, Any]] = [
    {
        "question": "What is 2+2?",
        "type": "single_choice",
        "difficulty": "easy",
        "answers": [
            {"text": "4", "is_correct": True},
            {"text": "3", "is_correct": False},
            {"text": "5", "is_correct": False},
            {"text": "22", "is_correct": False},
        ],
        "explanation": "Basic addition.",
    },
    {
        "question": "The Earth orbits the Sun.",
        "type": "true_false",
        "difficulty": "easy",
        "answers": [
            {"text": "True", "is_correct": True},
            {"text": "False", "is_correct": False},
        ],
        "explanation": "",
    },
    {
        "question": "Name the largest planet in the Solar System.",
        "type": "short_answer",
        "difficulty": "medium",
        "answers": [{"text": "Jupiter", "is_correct": True}],
    },
]


def questions_reply(questions: Optional[List[Dict[str, Any]]] = None) -> str:
    """The JSON text an LLM is asked to produce."""
    return json.dumps({"questions": SAMPLE_QUESTIONS if questions is None else questions})


def chat_completion_body(content: str) -> Dict[str, Any]:
    """OpenAI / Perplexity chat-completions response envelope."""
    return {
        "id": "cmpl-test",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }


def yandex_completion_body(text: str) -> Dict[str, Any]:
    """YandexGPT foundation-models response envelope."""
    return {
        "result": {
            "alternatives": [{"message": {"role": "assistant", "text": text}, "status": "ALTERNATIVE_STATUS_FINAL"}],
            "modelVersion": "test",
        }
    }


def mock_client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_params(**overrides: Any) -> GenerationParams:
    values: Dict[str, Any] = {"text": "Two plus two equals four.", "num_questions": 3}
    values.update(overrides)
    return GenerationParams(**values)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def llm_requests() -> List[httpx.Request]:
    """Requests seen by the default mock LLM transport."""
    return []


@pytest_asyncio.fixture
async def llm_http_client(llm_requests: List[httpx.Request]) -> AsyncGenerator[httpx.AsyncClient, None]:
    """A pooled client whose transport answers every chat completion with SAMPLE_QUESTIONS."""

    def handler(request: httpx.Request) -> httpx.Response:
        llm_requests.append(request)
        return httpx.Response(200, json=chat_completion_body(questions_reply()))

    async with mock_client(handler) as http_client:
        yield http_client


@pytest.fixture
def llm_factory(llm_http_client: httpx.AsyncClient) -> LLMFactory:
    return LLMFactory(
        perplexity_key="pplx-test-key",
        openai_key="sk-test-key",
        http_client=llm_http_client,
    )


@pytest_asyncio.fixture
async def client(llm_factory: LLMFactory) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with freshly built services on
    ``app.state``.  Individual tests may swap services through
    ``app.dependency_overrides``; overrides are cleared afterwards.
    """
    app.state.parser_factory = build_parser_factory()
    app.state.llm_factory = llm_factory
    app.state.exporter = MoodleXMLExporter()
    app.state.moodle_client = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
