import os
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings and configuration"""

    # ============ APP SETTINGS ============
    APP_NAME: str = "Chat Relay"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"

    # ============ SERVER SETTINGS ============
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", 8000))
    RELOAD: bool = os.getenv("RELOAD", "False").lower() == "true"

    # ============ PROVIDER SETTINGS ============
    # No key means the assistant runs in "not configured" mode
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    LLM_MODEL_NAME: str = os.getenv("LLM_MODEL_NAME", "gpt-4o-mini")

    # LLM Model Parameters
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", 0.5))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", 1024))
    LLM_TIMEOUT: float = float(os.getenv("LLM_TIMEOUT", 60))

    # ============ ASSISTANT SETTINGS ============
    ASSISTANT_NAME: str = os.getenv("ASSISTANT_NAME", "Metris AI")
    SUPPORT_EMAIL: str = os.getenv("SUPPORT_EMAIL", "support@metrisenergy.com")
    # Optional path to a replacement persona/instruction template
    PERSONA_TEMPLATE_PATH: Optional[str] = os.getenv("PERSONA_TEMPLATE_PATH", None)

    # ============ LOGGING SETTINGS ============
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE", None)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Instantiate settings
settings = Settings()
