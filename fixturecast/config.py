"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class ConfigurationError(RuntimeError):
    """Raised when a required credential or setting is missing."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # State store
    DATABASE_URL: str = "sqlite:///./fixturecast.db"
    STATE_STORE_BACKEND: str = "sql"  # "sql" | "memory"

    # API-Football (API-Sports direct)
    FOOTBALL_API_KEY: str = ""
    FOOTBALL_API_BASE_URL: str = "https://v3.football.api-sports.io"
    FOOTBALL_API_TIMEOUT_SECONDS: float = 30.0
    FEATURED_ONLY_FETCH: bool = False
    FEATURED_FETCH_CONCURRENCY: int = 5
    CORNERS_FETCH_CONCURRENCY: int = 6
    # Used when no featured competition plays on the target date
    FALLBACK_MATCH_LIMIT: int = 25

    # Gemini LLM Configuration
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_MAX_TOKENS: int = 2048

    # DeepSeek (OpenAI-compatible) fallback provider
    DEEPSEEK_API_KEY: str = ""
    DEEPSEEK_BASE_URL: str = "https://api.deepseek.com"
    DEEPSEEK_MODEL: str = "deepseek-chat"

    # Shared LLM request settings
    LLM_TIMEOUT_SECONDS: int = 60
    LLM_TEMPERATURE: float = 0.3
    LLM_TOP_P: float = 0.9

    # Provider chain retry policy
    PREDICTION_MAX_ATTEMPTS: int = 5
    PREDICTION_BACKOFF_BASE_SECONDS: float = 1.5
    PREDICTION_BACKOFF_JITTER_SECONDS: float = 0.25

    # Wave controller (AIMD-style)
    WAVE_MIN_CONCURRENCY: int = 1
    WAVE_MAX_CONCURRENCY: int = 4
    WAVE_INITIAL_CONCURRENCY: int = 4
    WAVE_BASE_DELAY_MS: int = 500
    WAVE_MAX_DELAY_MS: int = 8000
    WAVE_DELAY_MULTIPLIER: float = 2.0
    WAVE_DELAY_DECAY: float = 0.5
    CIRCUIT_BREAK_THRESHOLD: int = 5
    CIRCUIT_BREAK_BACKOFF_SECONDS: float = 90.0

    # Accuracy scoring
    ACCURACY_GOAL_LINE: float = 2.5
    ACCURACY_CORNERS_LINE: float = 9.5
    BACKFILL_MAX_DAYS: int = 60

    # API Security
    API_KEY: str = ""  # Optional API key for trigger endpoints
    API_KEY_HEADER: str = "X-API-Key"

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    PREDICTIONS_CRON_HOURS: str = "6,12,18,23"
    SCORES_CRON_MINUTE: int = 15

    # Telemetry / Observability
    METRICS_BEARER_TOKEN: str = ""  # Bearer token for /metrics endpoint
    SENTRY_ENABLED: bool = True
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.05

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# ============================================================================
# LLM Models Catalog (provider family per model id)
# ============================================================================

LLM_MODELS: dict = {
    "gemini-2.5-flash": {
        "provider": "gemini",
        "display_name": "Gemini 2.5 Flash",
        "fallback_rank": 0,
    },
    "gemini-2.0-flash": {
        "provider": "gemini",
        "display_name": "Gemini 2.0 Flash",
        "fallback_rank": 1,
    },
    "gemini-2.5-flash-lite": {
        "provider": "gemini",
        "display_name": "Gemini 2.5 Flash-Lite",
        "fallback_rank": 2,
    },
    "deepseek-chat": {
        "provider": "deepseek",
        "display_name": "DeepSeek V3 Chat",
        "fallback_rank": 0,
    },
    "deepseek-reasoner": {
        "provider": "deepseek",
        "display_name": "DeepSeek R1",
        "fallback_rank": 1,
    },
}


def provider_for_model(model: str) -> str:
    """Return the provider family of a catalog model id.

    Unknown ids are routed by prefix so ad-hoc model versions
    (e.g. "gemini-2.5-pro") still reach the right client.
    """
    entry = LLM_MODELS.get(model)
    if entry:
        return entry["provider"]
    return model.split("-", 1)[0]
