"""
Application configuration settings
FILE: eduquest/core/config.py
"""
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Runtime environment ("reset" credit action is refused in production)
    environment: Literal["development", "production", "test"] = "development"
    session_secret: str = "your-secret-key-change-in-production"

    # LLM Configuration
    llm_provider: Literal["gemini", "openai"] = "gemini"
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"

    # Timeouts (seconds) - multimodal requests get the longer one
    text_timeout: float = 30.0
    multimodal_timeout: float = 60.0

    # Credits
    initial_credits: int = 4
    credits_mode: Literal["local", "server"] = "server"
    credit_account_ttl_hours: int = 24

    # Storage Configuration
    storage_backend: Literal["memory", "json", "mongodb"] = "json"
    storage_dir: str = ".eduquest"
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "eduquest"
    storage_collection: str = "kv_store"

    # Client Configuration
    api_base_url: str = "http://localhost:8080"

    # Upload Configuration
    max_file_size: int = 10485760
    question_set_archive_size: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = False  # This allows case-insensitive matching
        extra = "allow"  # This allows extra fields

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
