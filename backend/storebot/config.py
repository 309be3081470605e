"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "StoreBot Payment Reconciliation"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    APP_URL: str = "http://localhost:4478"

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'storebot.db'}"

    # --- Payment Gateway (Mercado Pago) ---
    MERCADO_PAGO_API_URL: str = "https://api.mercadopago.com"
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    GATEWAY_USER_AGENT: str = "StoreBotDashboard/1.0"

    # --- Messaging Channel (WhatsApp Cloud API) ---
    META_GRAPH_API_URL: str = "https://graph.facebook.com"
    META_GRAPH_API_VERSION: str = "v20.0"
    MESSAGING_TIMEOUT_SECONDS: float = 10.0
    CUSTOMER_CREDIT_TEMPLATE: str = "saldo_creditado"
    CUSTOMER_CREDIT_TEMPLATE_LANGUAGE: str = "pt_BR"

    # --- Email (SMTP) ---
    SMTP_HOST: str = ""
    SMTP_PORT: int = 465
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_SSL: bool = True
    SMTP_FROM_EMAIL: str = ""
    SMTP_FROM_NAME: str = "StoreBot"
    SMTP_TIMEOUT_SECONDS: float = 10.0
    ADMIN_NOTIFICATION_EMAILS: list[str] = []

    # --- Reconciliation limits ---
    RAW_PAYLOAD_MAX_CHARS: int = 6000
    WEBHOOK_HISTORY_LIMIT: int = 20

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
