from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # core
    ENV: str = "dev"
    API_PREFIX: str = "/api"

    # auth / security
    API_AUTH_KEY: str | None = None
    FRONTEND_ORIGIN: str | None = None
    # Explicit debug-only switch for wide-open CORS in non-prod envs
    CORS_ALLOW_ALL_ORIGINS: bool = False

    # cache (optional; caching is a no-op without it)
    REDIS_URL: str | None = None

    # web search (Gemini google_search grounding)
    GOOGLE_AI_API_KEY: str | None = None
    GOOGLE_AI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    SEARCH_MODEL: str = "gemini-2.5-flash"
    SEARCH_TIMEOUT_SECONDS: int = 30
    SEARCH_CACHE_TTL_SECONDS: int = 60 * 60 * 6

    # url content fetcher
    FETCH_TIMEOUT_SECONDS: int = 20
    FETCH_MAX_CHARS: int = 15000
    FETCH_USER_AGENT: str = "StableMap-Bot/1.0 (Business Intelligence)"

    # news api
    NEWS_API_KEY: str | None = None
    NEWS_API_BASE_URL: str = "https://newsapi.org/v2"

    # llm providers
    OPENAI_API_KEY: str | None = None
    OPENROUTER_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    # Optional pass-through proxy; when set, every provider is routed through it
    AI_PROXY_URL: str | None = None
    AI_TIMEOUT_SECONDS: int = 60
    AI_MODEL_ROSTER_JSON: str | None = None

    # source registry: comma-separated domains excluded from search biasing
    EXCLUDED_SOURCE_DOMAINS: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
