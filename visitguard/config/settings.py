"""
Application-wide settings using pydantic-settings.
All runtime env access in visitguard/ should go through this module.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_PATH = PROJECT_ROOT / ".env"

_RXNAV_DEFAULT_BASE_URL = "https://rxnav.nlm.nih.gov/REST"


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    LOG_DIR: str = "./logs"
    LOG_FILE_NAME: str = "visitguard.debug.log"
    LOG_FILE_WHEN: str = "midnight"
    LOG_FILE_INTERVAL: int = 1
    LOG_FILE_BACKUP_COUNT: int = 7
    LOG_FILE_ENCODING: str = "utf-8"
    LOG_FILE_LEVEL: str = "DEBUG"
    LOG_TRUNCATE: int = 600

    # Correlation windows (seconds)
    CORRELATION_WINDOW_SECONDS: float = 10.0
    CLARIFICATION_WINDOW_SECONDS: float = 15.0
    CLARIFICATION_TTL_SECONDS: float = 30.0
    PRESCRIPTION_DEBOUNCE_SECONDS: float = 8.0
    RECENT_EVENTS_WINDOW_SECONDS: float = 30.0

    # Safety evaluation
    ELDERLY_AGE_THRESHOLD: int = 65
    INTERACTION_ORACLE: str = "rxnav"
    RXNAV_BASE_URL: str = _RXNAV_DEFAULT_BASE_URL
    INTERACTION_LOOKUP_TIMEOUT: float = 10.0
    INTERACTION_MAX_PAIRS: int = 5

    # Storage
    VISIT_ARCHIVE_PATH: str = ""
    PATIENT_RECORD_MAX_CHARS: int = 50000
    PATIENT_RECORD_MAX_BYTES: int = 10 * 1024 * 1024

    # Scribe LLM
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = ""
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    SCRIBE_PROVIDER: str = ""
    SCRIBE_MODEL: str = ""

    # Event stream
    SSE_PING_SECONDS: float = 15.0

    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def _agent_value(self, agent_key: str, suffix: str) -> str:
        key = (agent_key or "").strip().upper()
        if not key:
            return ""
        return str(getattr(self, f"{key}_{suffix}", "") or "").strip()

    def get_agent_model(self, agent_key: str, default_model: str) -> str:
        return self._agent_value(agent_key, "MODEL") or default_model

    def get_agent_provider(self, agent_key: str) -> str:
        return self._agent_value(agent_key, "PROVIDER")

    def get_agent_base_url(self, agent_key: str, provider_hint: str = "") -> str:
        _ = agent_key
        hint = (provider_hint or "").strip().lower()
        if hint == "ollama":
            return self.OLLAMA_BASE_URL
        return self.OPENAI_BASE_URL

    def get_agent_api_key(self, agent_key: str) -> str:
        return self._agent_value(agent_key, "API_KEY") or self.OPENAI_API_KEY

    def has_openai_like_creds(self, agent_key: str) -> bool:
        return bool(self.get_agent_api_key(agent_key))


settings = Settings()
