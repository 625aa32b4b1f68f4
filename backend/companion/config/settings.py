"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "Focus Companion"
    app_version: str = "1.0.0"
    debug: bool = True

    # Security
    secret_key: str = "your-secret-key-change-this-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 30  # 30 days

    # Storage
    local_storage_path: str = "./data"

    # LLM Provider settings
    llm_provider: str = "anthropic"  # "anthropic" or "openai"
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None  # uses provider default if not set
    llm_base_url: Optional[str] = None  # uses provider default if not set
    llm_max_tokens: int = 1024
    greeting_max_tokens: int = 256
    llm_timeout_seconds: float = 120.0
    prompt_version: str = "v1"  # v1 (warm), v2 (casual), v3 (minimal)

    # Legacy keys (still accepted)
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None

    # Input ceilings
    max_message_length: int = 10000
    max_task_length: int = 500
    max_memory_content_length: int = 5000

    # Context assembly
    relevance_top_k: int = 5
    relevance_recent_days: int = 7
    recent_sessions_limit: int = 10
    recent_sessions_rendered: int = 5
    memories_per_category: int = 5
    touch_relevant_memories: bool = True

    # Focus session defaults (minutes)
    default_duration_minutes: int = 25
    default_check_in_minutes: int = 15

    # WebSocket
    ws_auth_close_code: int = 4001

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/companion.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses
    log_llm_calls: bool = True  # Log all LLM calls with token usage

    class Config:
        env_file = ".env"
        case_sensitive = False

    def resolved_llm_api_key(self) -> Optional[str]:
        """API key for the configured provider, falling back to legacy keys."""
        if self.llm_api_key:
            return self.llm_api_key
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key


settings = Settings()
