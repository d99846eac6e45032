"""
Application configuration using 12-factor environment variables.
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from SMS_DEV_* environment variables."""
    
    model_config = SettingsConfigDict(
        env_prefix="SMS_DEV_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # Application
    app_name: str = Field(default="sms-dev-api")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    
    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=4001)
    cors_enabled: bool = Field(default=True)
    
    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text
    
    # Webhook delivery
    webhook_url: Optional[str] = Field(default=None, description="Developer endpoint receiving inbound messages")
    webhook_enabled: Optional[bool] = Field(default=None, description="Defaults to true when a URL is set")
    webhook_retries: int = Field(default=3, ge=1)
    webhook_timeout_ms: int = Field(default=5000, gt=0)
    webhook_secret: Optional[str] = Field(default=None, description="HMAC-SHA256 secret for signing webhooks")
    webhook_history_limit: int = Field(default=100, ge=1)
    
    # Simulated carrier
    default_from_number: str = Field(default="+15551234567")
    system_number_prefix: str = Field(default="+1555")
    message_cost: float = Field(default=0.01)
    sent_delay_ms: int = Field(default=500, ge=0)
    delivered_delay_ms: int = Field(default=1000, ge=0)
    
    # Real-time fan-out
    subscriber_queue_size: int = Field(default=100, ge=1)
    
    @property
    def is_webhook_enabled(self) -> bool:
        """Webhooks are on when explicitly enabled, or implicitly by a configured URL."""
        if self.webhook_enabled is None:
            return bool(self.webhook_url)
        return self.webhook_enabled


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
