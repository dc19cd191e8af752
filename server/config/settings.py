"""
Web Search Server Settings Configuration
Environment-driven configuration for the multi-source search orchestrator
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator
from pathlib import Path


class WebSearchSettings(BaseSettings):
    """Configuration settings for the web search server"""

    # Server Configuration
    host: str = "localhost"
    port: int = 8010
    debug: bool = False
    environment: str = "development"

    # CORS Configuration
    enable_cors: bool = True
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # Monitoring
    log_level: str = "INFO"
    log_path: str = "./logs"
    structured_logging: bool = False

    # Outbound HTTP
    user_agent: str = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    accept_language: str = "en-US,en;q=0.9"

    # Fetcher (retry/backoff)
    timeout_seconds: float = 20.0
    retry_attempts: int = 3
    retry_base_delay: float = 0.8
    adaptive_timeouts: bool = True
    adaptive_timeout_step: float = 2.0

    # Orchestration
    max_results_per_engine: int = 8
    concurrent_engines: int = 6
    max_search_iterations: int = 8
    search_context_size: str = "medium"  # low, medium, high
    per_domain_cap: int = 3
    max_citations: int = 5
    min_relevance_threshold: float = 0.2
    search_deadline_seconds: Optional[float] = None

    # Query refinement
    refinement_max_queries: int = 3
    refinement_engines: int = 2
    refinement_term_threshold: float = 0.7

    # Content enrichment
    enable_content_extraction: bool = True
    max_scrape_urls: int = 8
    scrape_concurrency: int = 3
    scrape_timeout_seconds: float = 8.0
    max_content_length: int = 5000

    # Result cache
    cache_enabled: bool = True
    cache_ttl_seconds: int = 21600  # 6 hours
    cache_max_entries: int = 100

    # Scoring weights
    weight_relevance: float = 0.35
    weight_authority: float = 0.25
    weight_quality: float = 0.20
    weight_intent_boost: float = 0.15
    weight_freshness: float = 0.05

    # Optional self-hosted meta-search
    searxng_url: Optional[str] = None

    @property
    def context_result_limit(self) -> int:
        """Number of final results kept for the configured context size"""
        return {"low": 5, "medium": 10, "high": 20}.get(self.search_context_size, 10)

    @field_validator("search_context_size")
    @classmethod
    def validate_context_size(cls, v):
        """Only low/medium/high are meaningful"""
        v = v.lower()
        if v not in ("low", "medium", "high"):
            raise ValueError(f"search_context_size must be low, medium or high, got {v}")
        return v

    @field_validator("retry_attempts", "concurrent_engines", "scrape_concurrency", "max_search_iterations")
    @classmethod
    def ensure_positive(cls, v):
        """Counts and pool sizes must be at least one"""
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @field_validator("log_path")
    @classmethod
    def ensure_paths_exist(cls, v):
        """Ensure log path exists"""
        Path(v).mkdir(parents=True, exist_ok=True)
        return v

    model_config = {
        "env_file": ".env",
        "env_prefix": "WEBSEARCH_",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Global settings instance
settings = WebSearchSettings()


def get_settings() -> WebSearchSettings:
    """Get application settings"""
    return settings
