from pydantic_settings import BaseSettings
from functools import lru_cache
import os


class Settings(BaseSettings):
    # LLM (any OpenAI-compatible chat completions endpoint, OpenRouter by default)
    llm_api_key: str = ""
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "openai/gpt-4o"
    llm_timeout: float = 120.0  # seconds
    llm_temperature: float = 0.7

    # Browser
    headless: bool = True
    browser_executable_path: str = ""
    viewport_width: int = 1920
    viewport_height: int = 1080
    navigation_timeout_ms: int = 120000
    navigation_wait_until: str = "networkidle"

    # Navigation retry
    retry_max_attempts: int = 5
    retry_delay_seconds: float = 10.0

    # Crawl bounds
    crawl_max_depth: int = 2
    crawl_max_pages: int = 50

    # Screenshots live in a per-run subdirectory of this (system temp dir if empty)
    screenshot_base_dir: str = ""

    # Input limits for the external LLM calls
    semantic_text_limit: int = 8000
    semantic_max_images: int = 10
    semantic_max_screenshots: int = 5
    analysis_text_limit: int = 8000
    analysis_max_images: int = 10

    # Cache
    cache_freshness_seconds: int = 86400  # advisory only, never expires entries
    coalesce_inflight_runs: bool = True

    log_level: str = "INFO"
    port: int = 3000

    class Config:
        # Look for .env in the repo root (two levels up from backend/tales_analyzer/)
        _env_path = os.path.join(os.path.dirname(__file__), "..", "..", ".env")
        env_file = _env_path if os.path.exists(_env_path) else None
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()
