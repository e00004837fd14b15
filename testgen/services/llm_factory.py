"""
Selects a question-generation strategy by provider name.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from testgen.config import Settings, settings
from testgen.exceptions import UnknownProviderError
from testgen.services.llm_providers import OpenAIStrategy, PerplexityStrategy, YandexGPTStrategy
from testgen.services.llm_strategy import ChatCompletionStrategy

logger = logging.getLogger(__name__)

# Canonical names, in the order they are listed to clients
KNOWN_PROVIDERS: Tuple[str, ...] = ("perplexity", "openai", "yandexgpt")

_ALIASES: Dict[str, str] = {"yandex": "yandexgpt"}


class LLMFactory:
    """Holds provider credentials and builds the strategy a request asks for."""

    def __init__(
        self,
        perplexity_key: str = "",
        openai_key: str = "",
        yandex_key: str = "",
        yandex_folder_id: str = "",
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._perplexity_key = perplexity_key
        self._openai_key = openai_key
        self._yandex_key = yandex_key
        self._yandex_folder_id = yandex_folder_id
        self._http_client = http_client

        self._builders: Dict[str, Callable[[], ChatCompletionStrategy]] = {
            "perplexity": lambda: PerplexityStrategy(
                self._perplexity_key, http_client=self._http_client
            ),
            "openai": lambda: OpenAIStrategy(self._openai_key, http_client=self._http_client),
            "yandexgpt": lambda: YandexGPTStrategy(
                self._yandex_key, self._yandex_folder_id, http_client=self._http_client
            ),
        }

    @classmethod
    def from_settings(
        cls,
        config: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "LLMFactory":
        config = config or settings
        return cls(
            perplexity_key=config.PERPLEXITY_API_KEY,
            openai_key=config.OPENAI_API_KEY,
            yandex_key=config.YANDEX_API_KEY,
            yandex_folder_id=config.YANDEX_FOLDER_ID,
            http_client=http_client,
        )

    def create_strategy(self, provider: str) -> ChatCompletionStrategy:
        """
        Build the strategy for *provider* (``yandex`` is accepted for ``yandexgpt``).

        Raises:
            UnknownProviderError: *provider* is not a known name.
        """
        name = _ALIASES.get(provider, provider)
        builder = self._builders.get(name)
        if builder is None:
            raise UnknownProviderError(provider)
        logger.debug("Selected LLM provider %s", name)
        return builder()

    def available_providers(self) -> List[str]:
        """Providers whose credentials are present."""
        configured = {
            "perplexity": bool(self._perplexity_key),
            "openai": bool(self._openai_key),
            "yandexgpt": bool(self._yandex_key and self._yandex_folder_id),
        }
        return [name for name in KNOWN_PROVIDERS if configured[name]]
