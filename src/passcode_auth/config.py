"""Passcode Auth — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database (user profiles) ──────────────────────────
    database_url: str = "sqlite+aiosqlite:///./passcode_auth.db"

    # ── One-time passcodes ────────────────────────────────
    otp_ttl_minutes: int = 15
    otp_expiry_timezone: str = "Asia/Manila"

    # ── Outbound mail ─────────────────────────────────────
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_start_tls: bool = True
    email_from: str = "no-reply@example.com"
    email_from_name: str = "LoamTech Solutions"

    # ── Identity provider admin API ───────────────────────
    identity_api_base_url: str = "http://localhost:9099/admin/v1"
    identity_api_key: str = ""

    # ── App ───────────────────────────────────────────────
    app_name: str = "Passcode Auth"
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
