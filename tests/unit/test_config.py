"""Tests for configuration defaults and env overrides."""

from __future__ import annotations

from triguard.core.config import AppSettings, NotificationConfig, UploadConfig, WizardConfig


def test_default_settings():
    settings = AppSettings()
    assert settings.environment == "dev"
    assert settings.wizard.company_domain == "triguardroofing.com"


def test_wizard_config_defaults():
    config = WizardConfig()
    assert config.max_email_suffix == 99
    assert config.persistence_timeout_seconds > 0
    assert config.dispatch_timeout_seconds > 0


def test_upload_config_defaults():
    config = UploadConfig()
    assert config.max_bytes == 10 * 1024 * 1024
    assert set(config.allowed_document_types) == {
        "image/jpeg", "image/png", "image/webp", "application/pdf",
    }


def test_wizard_env_override(monkeypatch):
    monkeypatch.setenv("TRIGUARD_WIZARD_COMPANY_DOMAIN", "example.test")
    monkeypatch.setenv("TRIGUARD_WIZARD_MAX_EMAIL_SUFFIX", "5")
    config = WizardConfig()
    assert config.company_domain == "example.test"
    assert config.max_email_suffix == 5


def test_notification_env_override(monkeypatch):
    monkeypatch.setenv("TRIGUARD_NOTIFY_BASE_URL", "https://hooks.example.test/v1")
    monkeypatch.setenv("TRIGUARD_NOTIFY_API_TOKEN", "secret")
    config = NotificationConfig()
    assert config.base_url == "https://hooks.example.test/v1"
    assert config.api_token == "secret"
