from pathlib import Path
from typing import Literal, Optional
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration with environment variable mapping.
    All settings can be defined in .env file or as environment variables.
    """

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core settings
    PROJECT_NAME: str = Field(default="WhatsApp Gateway")
    PROJECT_DESCRIPTION: str = Field(
        default="HTTP and WebSocket gateway for a WhatsApp Web session"
    )
    ENVIRONMENT: Literal["dev", "prod"] = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: str = Field(default="logs")
    LOG_TO_FILE: bool = Field(default=True)
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3000)
    BASE_URL: Optional[str] = Field(default=None)
    CORS_ORIGIN: str = Field(default="*")

    # Security
    MASTER_KEY: str = Field(default="default_master_key_change_this")
    API_KEYS_FILE: str = Field(default="api-keys.json")
    KEY_TOUCH_INTERVAL: float = Field(default=60.0)

    # WhatsApp session
    WHATSAPP_CLIENT_ID: str = Field(default="whatsapp-qr-scanner")
    SESSION_DIR: str = Field(default=".wwebjs_auth")
    CACHE_DIR: str = Field(default=".wwebjs_cache")
    BROWSER_EXECUTABLE_PATH: Optional[str] = Field(default=None)
    BROWSER_HEADLESS: bool = Field(default=True)
    QR_PRINT_TERMINAL: bool = Field(default=True)

    # Timing (seconds)
    REINIT_BASE_DELAY: float = Field(default=2.0)
    REINIT_MAX_DELAY: float = Field(default=30.0)
    LOGOUT_REINIT_DELAY: float = Field(default=2.0)
    PROFILE_PIC_TIMEOUT: float = Field(default=5.0)
    WEBHOOK_TIMEOUT: float = Field(default=10.0)

    # Uploads
    MAX_UPLOAD_BYTES: int = Field(default=16 * 1024 * 1024)

    @model_validator(mode="after")
    def default_base_url(self) -> "Settings":
        if not self.BASE_URL:
            self.BASE_URL = f"http://localhost:{self.PORT}"
        return self

    @property
    def session_path(self) -> Path:
        """Browser profile holding the linked WhatsApp session."""
        return Path(self.SESSION_DIR) / f"session-{self.WHATSAPP_CLIENT_ID}"

    @property
    def cache_path(self) -> Path:
        return Path(self.CACHE_DIR)

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]


settings = Settings()
