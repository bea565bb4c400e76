"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class WizardConfig(BaseSettings):
    """Onboarding wizard behaviour."""

    model_config = {"env_prefix": "TRIGUARD_WIZARD_"}

    company_domain: str = "triguardroofing.com"
    max_email_suffix: int = 99
    persistence_timeout_seconds: float = 10.0
    dispatch_timeout_seconds: float = 15.0
    session_idle_seconds: float = 3600.0


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "TRIGUARD_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis cache configuration for reference-data lookups."""

    model_config = {"env_prefix": "TRIGUARD_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    cache_ttl: int = 300


class S3Config(BaseSettings):
    """S3 blob storage for documents, badge photos and voice recordings."""

    model_config = {"env_prefix": "TRIGUARD_S3_"}

    bucket: str = "triguard-employee-files"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    public_url_base: str = ""  # CDN / bucket website; empty -> virtual-hosted S3 URL


class UploadConfig(BaseSettings):
    """Upload limits and key prefixes."""

    model_config = {"env_prefix": "TRIGUARD_UPLOAD_"}

    max_bytes: int = 10 * 1024 * 1024
    allowed_document_types: list[str] = [
        "image/jpeg",
        "image/png",
        "image/webp",
        "application/pdf",
    ]
    documents_prefix: str = "employee-documents"
    badge_photos_prefix: str = "badge-photos"
    voice_recordings_prefix: str = "voice-recordings"


class NotificationConfig(BaseSettings):
    """Notification service (email/webhook fan-out) configuration."""

    model_config = {"env_prefix": "TRIGUARD_NOTIFY_"}

    base_url: str = "http://localhost:54321/functions/v1"
    api_token: str = ""
    timeout: float = 10.0
    onboarding_team_email: str = "onboarding@triguardroofing.com"


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "TRIGUARD_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    wizard: WizardConfig = WizardConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
    s3: S3Config = S3Config()
    uploads: UploadConfig = UploadConfig()
    notifications: NotificationConfig = NotificationConfig()
