"""Environment configuration for the reminder service."""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """Runtime settings, injected into every component that needs a flag."""

    environment: str = "development"
    database_url: str = "sqlite:///./reminders.db"
    log_level: str = "INFO"

    # Delay dispatch service (QStash-compatible)
    app_url: Optional[str] = None
    qstash_url: str = "https://qstash.upstash.io"
    qstash_token: Optional[str] = None
    qstash_current_signing_key: Optional[str] = None
    qstash_next_signing_key: Optional[str] = None
    delay_queue_enabled: bool = False
    http_timeout_seconds: float = 10.0

    # Delivery
    delivery_max_retries: int = 3
    delivery_claim_ttl_seconds: int = 300

    # Transports
    resend_api_key: Optional[str] = None
    resend_from: str = "FollowUpTimer <no-reply@followuptimer.app>"
    resend_api_url: str = "https://api.resend.com"
    push_service_url: Optional[str] = None
    push_service_token: Optional[str] = None

    # Identity provider tokens
    auth_jwt_secret: str = "dev-only-secret-change-me"
    auth_jwt_algorithm: str = "HS256"

    # Lifecycle events
    dapr_enabled: bool = False
    dapr_pubsub_name: str = "reminder-pubsub"
    dapr_topic: str = "reminder-events"

    frontend_url: str = "http://localhost:3000"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def callback_url(self) -> Optional[str]:
        """Public URL the delay dispatch service calls back on."""
        if not self.app_url:
            return None
        return f"{self.app_url.rstrip('/')}/api/reminders/deliver"

    @classmethod
    def from_env(cls) -> "Settings":
        environment = os.environ.get("ENVIRONMENT", "development")
        return cls(
            environment=environment,
            database_url=os.environ.get("DATABASE_URL", "sqlite:///./reminders.db"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            app_url=os.environ.get("APP_URL") or None,
            qstash_url=os.environ.get("QSTASH_URL", "https://qstash.upstash.io"),
            qstash_token=os.environ.get("QSTASH_TOKEN") or None,
            qstash_current_signing_key=os.environ.get("QSTASH_CURRENT_SIGNING_KEY") or None,
            qstash_next_signing_key=os.environ.get("QSTASH_NEXT_SIGNING_KEY") or None,
            delay_queue_enabled=_env_bool("DELAY_QUEUE_ENABLED", environment == "production"),
            http_timeout_seconds=float(_env_int("HTTP_TIMEOUT_SECONDS", 10)),
            delivery_max_retries=_env_int("DELIVERY_MAX_RETRIES", 3),
            delivery_claim_ttl_seconds=_env_int("DELIVERY_CLAIM_TTL_SECONDS", 300),
            resend_api_key=os.environ.get("RESEND_API_KEY") or None,
            resend_from=os.environ.get("RESEND_FROM", "FollowUpTimer <no-reply@followuptimer.app>"),
            resend_api_url=os.environ.get("RESEND_API_URL", "https://api.resend.com"),
            push_service_url=os.environ.get("PUSH_SERVICE_URL") or None,
            push_service_token=os.environ.get("PUSH_SERVICE_TOKEN") or None,
            auth_jwt_secret=os.environ.get("AUTH_JWT_SECRET", "dev-only-secret-change-me"),
            auth_jwt_algorithm=os.environ.get("AUTH_JWT_ALGORITHM", "HS256"),
            dapr_enabled=_env_bool("DAPR_ENABLED", False),
            dapr_pubsub_name=os.environ.get("DAPR_PUBSUB_NAME", "reminder-pubsub"),
            dapr_topic=os.environ.get("DAPR_TOPIC", "reminder-events"),
            frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000"),
        )


@lru_cache()
def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return Settings.from_env()
