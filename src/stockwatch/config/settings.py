"""Application settings and configuration management using Pydantic."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Main application settings combining all configuration sections."""

    # Environment and deployment
    environment: str = "development"
    debug: bool = False

    # Upstream instrument catalog (Tushare Pro)
    tushare_token: Optional[str] = None
    tushare_api_url: str = "http://api.tushare.pro"
    catalog_fetch_max_retries: int = 3
    catalog_retry_base_delay_seconds: float = 1.0
    catalog_sync_interval_minutes: int = 1440

    # Live quotes
    sina_quote_url: str = "https://hq.sinajs.cn"
    upstream_timeout_seconds: float = 10.0

    # Rule evaluation
    evaluation_interval_seconds: int = 60
    evaluation_concurrency: int = 8
    rule_debounce_window_seconds: int = 300
    enforce_trading_hours: bool = True

    # Alert delivery
    dispatch_timeout_seconds: float = 5.0
    alert_webhook_url: Optional[str] = None

    # API settings
    endpoint_host: str = "0.0.0.0"
    endpoint_port: int = 8000
    endpoint_auth_token: Optional[str] = None

    # Database settings
    database_url: Optional[str] = None
    data_directory: str = "data"
    database_echo_sql: bool = False
    database_pool_pre_ping: bool = True
    database_pool_recycle: int = 3600

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "structured"  # 'structured' or 'plain'
    log_file_enabled: bool = True
    log_file_path: str = "data/stockwatch.log"
    log_max_file_size: str = "10MB"
    log_backup_count: int = 5

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        valid_environments = ["development", "testing", "production"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    @field_validator(
        "upstream_timeout_seconds",
        "dispatch_timeout_seconds",
        "catalog_retry_base_delay_seconds",
    )
    @classmethod
    def validate_positive_duration(cls, v):
        """Network timeouts and delays must be bounded and positive."""
        if v <= 0:
            raise ValueError("Duration must be greater than zero")
        return v

    @field_validator(
        "catalog_fetch_max_retries",
        "catalog_sync_interval_minutes",
        "evaluation_interval_seconds",
        "evaluation_concurrency",
    )
    @classmethod
    def validate_positive_int(cls, v):
        """Validate counters and intervals are at least one."""
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("rule_debounce_window_seconds")
    @classmethod
    def validate_debounce_window(cls, v):
        """Validate debounce window (zero disables the cooldown)."""
        if v < 0:
            raise ValueError("Debounce window cannot be negative")
        return v

    @field_validator("endpoint_port")
    @classmethod
    def validate_port(cls, v):
        """Validate port number is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        valid_formats = ["structured", "plain"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    def get_database_url(self) -> str:
        """Get the complete database URL."""
        if self.database_url:
            return self.database_url

        # Default to SQLite in data directory
        db_dir = Path(self.data_directory)
        db_dir.mkdir(exist_ok=True)
        db_path = db_dir / "stockwatch.db"
        return f"sqlite:///{db_path}"

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
