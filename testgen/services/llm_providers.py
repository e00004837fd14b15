"""
Concrete question-generation providers.

Perplexity and OpenAI both speak the OpenAI chat-completions format and only
differ in endpoint, model and credential.  YandexGPT has its own request and
response shape and needs a cloud folder id besides the API key.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from testgen.config import settings
from testgen.exceptions import MalformedProviderResponseError, ProviderNotConfiguredError
from testgen.services.llm_strategy import SYSTEM_PROMPT, ChatCompletionStrategy

logger = logging.getLogger(__name__)


class PerplexityStrategy(ChatCompletionStrategy):
    PROVIDER = "perplexity"
    API_KEY_SETTING = "PERPLEXITY_API_KEY"

    def __init__(
        self,
        api_key: str,
        *,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        **options: Any,
    ) -> None:
        super().__init__(
            api_key,
            model=model or settings.PERPLEXITY_MODEL,
            base_url=base_url or settings.PERPLEXITY_BASE_URL,
            http_client=http_client,
            **options,
        )


class OpenAIStrategy(ChatCompletionStrategy):
    PROVIDER = "openai"
    API_KEY_SETTING = "OPENAI_API_KEY"

    def __init__(
        self,
        api_key: str,
        *,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        **options: Any,
    ) -> None:
        super().__init__(
            api_key,
            model=model or settings.OPENAI_MODEL,
            base_url=base_url or settings.OPENAI_BASE_URL,
            http_client=http_client,
            **options,
        )


class YandexGPTStrategy(ChatCompletionStrategy):
    """
    YandexGPT foundation-models completion API.

    Request:  {"modelUri": "gpt://<folder>/<model>", "completionOptions": {...}, "messages": [...]}
    Response: {"result": {"alternatives": [{"message": {"role": ..., "text": ...}}]}}
    """

    PROVIDER = "yandexgpt"
    API_KEY_SETTING = "YANDEX_API_KEY"

    def __init__(
        self,
        api_key: str,
        folder_id: str = "",
        *,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        **options: Any,
    ) -> None:
        super().__init__(
            api_key,
            model=model or settings.YANDEX_MODEL,
            base_url=base_url or settings.YANDEX_BASE_URL,
            http_client=http_client,
            **options,
        )
        self.folder_id = folder_id

    @property
    def model_uri(self) -> str:
        return f"gpt://{self.folder_id}/{self.model}"

    def _check_configured(self) -> None:
        super()._check_configured()
        if not self.folder_id:
            raise ProviderNotConfiguredError(self.PROVIDER, "YANDEX_FOLDER_ID")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Api-Key {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "modelUri": self.model_uri,
            "completionOptions": {
                "stream": False,
                "temperature": self.temperature,
                # the API rejects an integer here
                "maxTokens": str(self.max_tokens),
            },
            "messages": [
                {"role": "system", "text": SYSTEM_PROMPT},
                {"role": "user", "text": prompt},
            ],
        }

    def _extract_reply(self, body: Any) -> str:
        try:
            alternatives = body["result"]["alternatives"]
        except (KeyError, TypeError) as exc:
            raise MalformedProviderResponseError(self.PROVIDER, "missing result.alternatives") from exc

        if not alternatives:
            raise MalformedProviderResponseError(self.PROVIDER, "no alternatives in response")

        try:
            text = alternatives[0]["message"]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedProviderResponseError(
                self.PROVIDER, "missing alternatives[0].message.text"
            ) from exc

        if not isinstance(text, str) or not text.strip():
            raise MalformedProviderResponseError(self.PROVIDER, "empty reply")

        logger.debug("%s: %d alternatives, using the first", self.PROVIDER, len(alternatives))
        return text
