"""
Configuration management for the content opportunity engine
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Content Opportunity Engine"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Upstream session gateway sets this header on authenticated requests
    user_id_header: str = "X-User-Id"

    # Database
    database_url: str = "sqlite:///./content_engine.db"

    # Google OAuth (Search Console access is granted per user)
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_auth_endpoint: str = "https://accounts.google.com/o/oauth2/v2/auth"
    google_token_endpoint: str = "https://oauth2.googleapis.com/token"
    app_base_url: str = "http://localhost:8000"
    dashboard_path: str = "/dashboard/analytics"
    # Tokens expiring within this window are refreshed before use
    token_expiry_buffer_seconds: int = 300

    # Google Search Console
    search_console_api_base: str = "https://www.googleapis.com/webmasters/v3"
    gsc_default_site_url: str = "sc-domain:herbariumdyeworks.com"
    gsc_max_row_limit: int = 1000  # Provider ceiling per request
    opportunity_lookback_days: int = 90
    performance_lookback_days: int = 30
    blog_base_url: str = "https://herbariumdyeworks.com/blogs/news"

    # Opportunity thresholds
    min_impressions: int = 10
    max_ctr: float = 0.05  # Decimal 0-1
    min_position: float = 5
    opportunity_limit: int = 50

    # Scoring constants (uncalibrated, pending product-owner validation)
    ctr_at_position_1: float = 0.3
    position_divisor: float = 10

    # LLM Configuration
    anthropic_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    enable_llm_insights: bool = True
    llm_max_tokens: int = 4096
    recommendation_prompt_limit: int = 30

    # Recommendation cache
    recommendation_ttl_days: int = 7

    # Outbound calls (token endpoint, Search Console, LLM)
    request_timeout_seconds: float = 20.0

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
