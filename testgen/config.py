"""
Configuration settings for the testgen backend.
Loads environment variables and provides application-wide settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Upload Configuration
    MAX_FILE_SIZE: int = 50 * 1024 * 1024  # 50 MB
    SUPPORTED_FILE_TYPES: List[str] = ["pdf", "docx", "pptx", "txt", "md"]

    # LLM Configuration
    DEFAULT_LLM_PROVIDER: str = "perplexity"
    LLM_TIMEOUT: float = 60.0  # seconds per provider request
    LLM_TEMPERATURE: float = 0.6
    LLM_MAX_TOKENS: int = 2000
    LLM_DEFAULT_LANGUAGE: str = "ru"
    # Hard cap on questions returned by one provider call
    MAX_QUESTIONS_PER_REQUEST: int = 50

    # Perplexity
    PERPLEXITY_API_KEY: str = ""
    PERPLEXITY_MODEL: str = "sonar"
    PERPLEXITY_BASE_URL: str = "https://api.perplexity.ai/chat/completions"

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: str = "https://api.openai.com/v1/chat/completions"

    # YandexGPT
    YANDEX_API_KEY: str = ""
    YANDEX_FOLDER_ID: str = ""
    YANDEX_MODEL: str = "yandexgpt-lite"
    YANDEX_BASE_URL: str = "https://llm.api.cloud.yandex.net/foundationModels/v1/completion"

    # Moodle web services
    MOODLE_URL: str = ""
    MOODLE_TOKEN: str = ""
    MOODLE_TIMEOUT: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


# Global settings instance
settings = Settings()
