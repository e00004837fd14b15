"""
Question-generation strategies.

``LLMStrategy`` is the contract every provider satisfies; ``LLMContext`` holds
the strategy selected for a request.  ``ChatCompletionStrategy`` carries the
behaviour shared by the HTTP-backed providers: prompt construction, the
outbound call through an injectable ``httpx.AsyncClient``, and parsing of the
provider's JSON reply into ``GeneratedQuestion`` objects.

Public API
----------
LLMContext.generate_questions(params)   -> List[GeneratedQuestion]
LLMContext.get_provider_name()          -> str
build_prompt(params, default_language)  -> str
strip_code_fences(text)                 -> str
parse_questions(reply, provider, limit) -> List[GeneratedQuestion]
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from testgen.config import settings
from testgen.exceptions import (
    GenerationTimeoutError,
    MalformedProviderResponseError,
    NoStrategySetError,
    ProviderError,
    ProviderNotConfiguredError,
)
from testgen.models.schemas import (
    Difficulty,
    GeneratedAnswer,
    GeneratedQuestion,
    GenerationParams,
    QuestionType,
)

logger = logging.getLogger(__name__)


class LLMStrategy(Protocol):
    """Contract every question-generation provider satisfies."""

    async def generate_questions(self, params: GenerationParams) -> List[GeneratedQuestion]:
        ...

    def get_provider_name(self) -> str:
        ...


class LLMContext:
    """Runs generation through the currently selected strategy, if any."""

    def __init__(self, strategy: Optional[LLMStrategy] = None) -> None:
        self._strategy = strategy

    @property
    def strategy(self) -> Optional[LLMStrategy]:
        return self._strategy

    def set_strategy(self, strategy: Optional[LLMStrategy]) -> None:
        self._strategy = strategy

    def get_provider_name(self) -> str:
        if self._strategy is None:
            return "none"
        return self._strategy.get_provider_name()

    async def generate_questions(self, params: GenerationParams) -> List[GeneratedQuestion]:
        if self._strategy is None:
            raise NoStrategySetError()
        return await self._strategy.generate_questions(params)


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are a professional author of test questions for educational use. "
    "Generate high-quality questions and answer strictly in JSON."
)

_QUESTION_PROMPT = """\
Create {num_questions} test questions based on the following text.

TEXT:
{text}

REQUIREMENTS:
- Question types: {question_types}
- Difficulty: {difficulty}
- Language: {language}
- For each single_choice question give 4 answer options (1 correct, 3 incorrect)
- For each multiple_choice question give 5-6 options (2-3 correct, 2-3 incorrect)
- For true_false give exactly 2 options: "True" and "False"
- For short_answer give 1-3 accepted answers, all marked correct

RESPONSE FORMAT (strict JSON):
{{
  "questions": [
    {{
      "question": "Question text",
      "type": "single_choice",
      "difficulty": "{difficulty}",
      "answers": [
        {{"text": "Answer option 1", "is_correct": true}},
        {{"text": "Answer option 2", "is_correct": false}},
        {{"text": "Answer option 3", "is_correct": false}},
        {{"text": "Answer option 4", "is_correct": false}}
      ],
      "explanation": "Short explanation of the correct answer"
    }}
  ]
}}

Return ONLY valid JSON with no additional text.\
"""


def build_prompt(params: GenerationParams, default_language: str = "ru") -> str:
    """Render the generation prompt; the same params always give the same prompt."""
    if params.question_types:
        question_types = ", ".join(qt.value for qt in params.question_types)
    else:
        question_types = QuestionType.SINGLE_CHOICE.value

    difficulty = (params.difficulty or Difficulty.MEDIUM).value
    language = params.language or default_language

    return _QUESTION_PROMPT.format(
        num_questions=params.num_questions,
        text=params.text,
        question_types=question_types,
        difficulty=difficulty,
        language=language,
    )


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------

def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[len("```json"):]
    if text.startswith("```"):
        text = text[len("```"):]
    if text.endswith("```"):
        text = text[: -len("```")]
    return text.strip()


def parse_questions(reply: str, provider: str, limit: int) -> List[GeneratedQuestion]:
    """
    Parse a provider reply of the form ``{"questions": [...]}``.

    Items with an unknown type, empty text, no answers or no correct answer
    are dropped.  At most *limit* questions are returned.

    Raises:
        MalformedProviderResponseError: not JSON, no question list, or
            nothing usable left after validation.
    """
    cleaned = strip_code_fences(reply)
    try:
        payload = json.loads(cleaned)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.debug("%s reply is not JSON. Preview: %s", provider, cleaned[:300])
        raise MalformedProviderResponseError(provider, f"invalid JSON: {exc}") from exc

    raw_questions = payload.get("questions") if isinstance(payload, dict) else None
    if not isinstance(raw_questions, list) or not raw_questions:
        raise MalformedProviderResponseError(provider, "no questions generated")

    questions: List[GeneratedQuestion] = []
    for index, item in enumerate(raw_questions, start=1):
        question = _to_generated_question(item)
        if question is None:
            logger.warning("%s: dropping unusable question #%d", provider, index)
            continue
        questions.append(question)
        if len(questions) >= limit:
            break

    if not questions:
        raise MalformedProviderResponseError(provider, "no valid questions in reply")

    return questions


def _to_generated_question(item: Any) -> Optional[GeneratedQuestion]:
    if not isinstance(item, dict):
        return None

    text = str(item.get("question") or "").strip()
    if not text:
        return None

    try:
        question_type = QuestionType(str(item.get("type", "")).strip().lower())
    except ValueError:
        return None

    answers: List[GeneratedAnswer] = []
    for raw in item.get("answers") or []:
        if not isinstance(raw, dict):
            continue
        answer_text = str(raw.get("text") or "").strip()
        if answer_text:
            answers.append(
                GeneratedAnswer(text=answer_text, is_correct=_as_bool(raw.get("is_correct")))
            )

    if not answers or not any(a.is_correct for a in answers):
        return None

    try:
        difficulty: Optional[Difficulty] = Difficulty(str(item.get("difficulty", "")).lower())
    except ValueError:
        difficulty = None

    return GeneratedQuestion(
        question_text=text,
        question_type=question_type,
        difficulty=difficulty,
        answers=answers,
        explanation=str(item.get("explanation") or "").strip(),
    )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _preview(text: str, limit: int = 300) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


# ---------------------------------------------------------------------------
# HTTP-backed strategy base
# ---------------------------------------------------------------------------

class ChatCompletionStrategy:
    """
    Shared behaviour for providers exposing an OpenAI-style chat completion API.

    Subclasses set ``PROVIDER`` and ``API_KEY_SETTING`` and may override
    ``_headers``, ``_build_payload`` and ``_extract_reply`` for a different
    wire format.  Pass ``http_client`` to reuse a pooled client or to inject a
    mock transport; otherwise a client is opened per call.
    """

    PROVIDER: str = ""
    API_KEY_SETTING: str = ""

    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        default_language: Optional[str] = None,
        max_questions: Optional[int] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT
        self.temperature = temperature if temperature is not None else settings.LLM_TEMPERATURE
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.default_language = default_language or settings.LLM_DEFAULT_LANGUAGE
        self.max_questions = max_questions or settings.MAX_QUESTIONS_PER_REQUEST
        self._http_client = http_client

    def get_provider_name(self) -> str:
        return self.PROVIDER

    async def generate_questions(self, params: GenerationParams) -> List[GeneratedQuestion]:
        self._check_configured()

        prompt = build_prompt(params, self.default_language)
        logger.info(
            "%s: requesting %d questions (model=%s, text=%d chars, prompt=%d chars)",
            self.PROVIDER,
            params.num_questions,
            self.model,
            len(params.text),
            len(prompt),
        )

        body = await self._post(self._build_payload(prompt))
        reply = self._extract_reply(body)

        limit = min(params.num_questions, self.max_questions)
        questions = parse_questions(reply, self.PROVIDER, limit)
        logger.info("%s: generated %d questions", self.PROVIDER, len(questions))
        return questions

    # ------------------------------------------------------------------
    # Wire format (OpenAI-compatible by default)
    # ------------------------------------------------------------------

    def _check_configured(self) -> None:
        if not self.api_key:
            raise ProviderNotConfiguredError(self.PROVIDER, self.API_KEY_SETTING)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _extract_reply(self, body: Any) -> str:
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedProviderResponseError(
                self.PROVIDER, "missing choices[0].message.content"
            ) from exc
        if not isinstance(content, str) or not content.strip():
            raise MalformedProviderResponseError(self.PROVIDER, "empty reply")
        return content

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, payload: Dict[str, Any]) -> Any:
        """POST *payload* and return the decoded JSON body."""
        timeout = httpx.Timeout(self.timeout, connect=10.0)
        try:
            if self._http_client is not None:
                resp = await self._http_client.post(
                    self.base_url, json=payload, headers=self._headers(), timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    resp = await client.post(self.base_url, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.error("%s: request timed out after %.0f s", self.PROVIDER, self.timeout)
            raise GenerationTimeoutError(self.PROVIDER, self.timeout) from exc
        except httpx.HTTPError as exc:
            logger.error("%s: request failed: %s", self.PROVIDER, type(exc).__name__)
            raise ProviderError(self.PROVIDER, None, type(exc).__name__) from exc

        if not resp.is_success:
            logger.error("%s: API returned HTTP %d", self.PROVIDER, resp.status_code)
            raise ProviderError(self.PROVIDER, resp.status_code, _preview(resp.text))

        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedProviderResponseError(self.PROVIDER, "response body is not JSON") from exc
