"""
ConvoSpace Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables.
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for ConvoSpace logs.

    Follows XDG Base Directory Specification:
    - Uses $XDG_STATE_HOME/convospace if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/convospace if not set
    - Returns relative path ./logs if HOME not available (dev/testing)

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "convospace" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "convospace" / "logs")

    # Fallback for development/testing environments without HOME
    return "./logs"


def get_xdg_data_dir() -> str:
    """
    Get XDG-compliant data directory for ConvoSpace file storage.

    Returns:
        str: Path to data directory
    """
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    if xdg_data_home:
        return str(Path(xdg_data_home) / "convospace")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "share" / "convospace")

    return ".convospace_data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./convospace.sqlite"
    db_pool_size: int = 5
    db_pool_max_overflow: int = 5
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    # Authentication
    jwt_secret: str = "your-secret-key-change-in-production"
    access_token_expire_minutes: int = 60  # Tokens issued by /login
    refresh_token_expire_days: int = 7  # Tokens issued by /refresh
    reset_token_expire_minutes: int = 60
    password_min_length: int = 8

    # LLM providers (a provider is only offered when its key is set)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    chutes_api_key: str = ""
    chutes_base_url: str = "https://llm.chutes.ai/v1"
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com"
    google_api_key: str = ""
    google_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    portkey_api_key: str = ""
    portkey_base_url: str = "https://api.portkey.ai/v1"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    local_openai_api_key: str = ""  # e.g. "ollama"
    local_openai_base_url: str = "http://localhost:11434/v1"

    # Chat defaults
    default_llm_provider: str = "openrouter"
    default_model: str = "deepseek/deepseek-r1-0528:free"
    default_temperature: float = 0.7
    default_max_tokens: int = 80000  # Advertised to clients
    chat_max_tokens: int = 10096  # Used when a chat request omits maxTokens

    # Feature flags
    enable_voice_features: bool = False
    enable_image_generation: bool = False
    enable_chat_history: bool = True
    enable_code_execution: bool = False

    # Circuit breaker
    circuit_breaker_threshold: int = 5  # Consecutive failures before opening
    circuit_breaker_reset_seconds: float = 60.0  # Time before half-open retry

    # Code sessions (in-memory)
    code_session_max_age_seconds: int = 30 * 60
    code_session_gc_interval_seconds: int = 5 * 60
    code_session_cancel_grace_seconds: float = 5.0

    # Chat history
    chat_history_limit: int = 50  # Conversations kept per user

    # Storage
    storage_enabled: bool = True
    storage_provider: str = "local"
    storage_root: str = f"{get_xdg_data_dir()}/storage"
    storage_bucket: str = "convospace-storage"
    storage_max_file_size: int = 5 * 1024 * 1024 * 1024  # 5GB
    storage_quota_bytes: int = 10 * 1024 * 1024 * 1024  # 10GB per user

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True
    app_url: str = "http://localhost:3000"
    cors_origins: list[str] | str = ["http://localhost:3000"]

    # Application
    # "development" returns password reset tokens in API responses; deploy
    # with any other value
    environment: str = "development"
    version: str = "0.1.0"

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True  # Enable console (stdout/stderr) logging
    log_file_enabled: bool = True  # Enable file-based logging
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5  # Keep 5 backup files
    log_to_stdout: bool = True  # Log INFO/DEBUG to stdout
    log_to_stderr: bool = True  # Log WARNING/ERROR/CRITICAL to stderr

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())

    @property
    def storage_directory(self) -> Path:
        """Get the storage root as an expanded path."""
        return Path(self.storage_root).expanduser()

    @property
    def allowed_origins(self) -> list[str]:
        """CORS origins, accepting a comma-separated string from the environment."""
        if isinstance(self.cors_origins, str):
            return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return list(self.cors_origins)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


# Global settings instance
settings = Settings()
