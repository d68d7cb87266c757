# backend/heartbeat/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

# Valeurs de démo livrées dans les .env d'exemple : équivalent à "pas de clé"
PLACEHOLDER_KEYS = {
    "",
    "REPLACE_WITH_YOUR_API_KEY",
    "re_YOUR_API_KEY_HERE",
    "your_resend_api_key",
    "your-api-key",
}


class Settings(BaseSettings):

    PROJECT_NAME: str = "Heartbeat"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Database ─────────────────────────────────────────────
    # Absent → stockage mémoire (mode dégradé)
    DATABASE_URL: Optional[str] = None
    DEFAULT_OWNER_ID: int = 1

    # Base publique utilisée pour les liens de survey
    BASE_URL: str = "http://localhost:3000"

    # ── Email (Resend) ────────────────────────────────────────
    RESEND_API_KEY: Optional[str] = None
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM: str = "onboarding@resend.dev"
    EMAIL_FROM_NAME: str = "Heartbeat"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    # ── Analyse (Anthropic) ──────────────────────────────────
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_API_URL: str = "https://api.anthropic.com/v1/messages"
    ANTHROPIC_MODEL: str = "claude-3-haiku-20240307"
    ANTHROPIC_VERSION: str = "2023-06-01"
    ANTHROPIC_MAX_TOKENS: int = 2500
    ANALYSIS_TIMEOUT_SECONDS: float = 25.0
    ANALYSIS_MAX_RETRIES: int = 1
    ANALYSIS_MAX_BACKOFF_SECONDS: float = 10.0
    PURGE_RESPONSES_AFTER_ANALYSIS: bool = True

    # ── Rate limiting ────────────────────────────────────────
    RATE_LIMIT_DEFAULT: int = 120
    RATE_LIMIT_DEFAULT_WINDOW: float = 60.0
    RATE_LIMIT_ANALYZE: int = 5
    RATE_LIMIT_ANALYZE_WINDOW: float = 60.0
    RATE_LIMIT_SUBMIT: int = 1
    RATE_LIMIT_SUBMIT_WINDOW: float = 1.0
    RATE_LIMIT_SWEEP_SECONDS: float = 15 * 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding='utf-8',
        extra='ignore'
        )

    @property
    def resend_configured(self) -> bool:
        return (self.RESEND_API_KEY or "").strip() not in PLACEHOLDER_KEYS

    @property
    def anthropic_configured(self) -> bool:
        return (self.ANTHROPIC_API_KEY or "").strip() not in PLACEHOLDER_KEYS


settings = Settings()
