"""
Centralized configuration for the LeadFlow qualification engine.

All settings are loaded from environment variables via .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    # Brand
    brand_name: str = Field(default="LeadFlow AI", env="BRAND_NAME")

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    openai_llm_model: str = Field(default="gpt-4o-mini", env="OPENAI_LLM_MODEL")

    # Google Gemini
    google_generative_ai_api_key: Optional[str] = Field(
        default=None, env="GOOGLE_GENERATIVE_AI_API_KEY"
    )
    gemini_model: str = Field(default="gemini-1.5-flash", env="GEMINI_MODEL")

    # AWS / Bedrock (Anthropic Claude)
    aws_region: str = Field(default="us-east-1", env="AWS_REGION")
    aws_access_key_id: Optional[str] = Field(default=None, env="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = Field(default=None, env="AWS_SECRET_ACCESS_KEY")
    bedrock_llm_model_id: str = Field(
        default="anthropic.claude-3-5-sonnet-20241022-v2:0", env="BEDROCK_LLM_MODEL_ID"
    )

    # Generation
    max_tokens: int = Field(default=1024, env="MAX_TOKENS")
    temperature: float = Field(default=0.7, env="TEMPERATURE")
    provider_timeout_seconds: float = Field(default=30.0, env="PROVIDER_TIMEOUT_SECONDS")

    # Lead scoring cadence
    scoring_min_turns: int = Field(default=4, env="SCORING_MIN_TURNS")
    scoring_interval: int = Field(default=3, env="SCORING_INTERVAL")

    # Database
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, env="RATE_LIMIT_ENABLED")

    # API
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=8000, env="API_PORT")
    api_title: str = Field(default="LeadFlow Qualification API", env="API_TITLE")
    api_version: str = Field(default="1.0.0", env="API_VERSION")
    cors_origins: str = Field(default="*", env="CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    debug: bool = Field(default=False, env="DEBUG")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def has_bedrock_credentials(self) -> bool:
        return bool(self.aws_access_key_id and self.aws_secret_access_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
