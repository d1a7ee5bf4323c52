"""
# Configuration Management Module

Settings for the Be My Guide API, built on **Pydantic Settings**.

## Loading Hierarchy

Higher layers override lower layers:

1. Environment variables
2. File pointed at by `BE_MY_GUIDE_CONFIG_PATH`
3. `.bmg` file in the project root
4. `.env` file in the project root
5. Defaults declared on `Settings`

If no file is found the application runs in environment-only mode.

## Usage

```python
from be_my_guide.config import settings

settings.MONGODB_URL
settings.MAIL_API_KEY.get_secret_value()
```

Secrets (`MONGODB_PASSWORD`, `MAIL_API_KEY`) are `SecretStr` so they never
end up in logs by accident.
"""

import os
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
BMG_FILENAME: str = ".bmg"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "BE_MY_GUIDE_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determines the configuration file path based on a predefined precedence order.

    1.  **Environment Variable**: `BE_MY_GUIDE_CONFIG_PATH` (if set and file exists).
    2.  **BMG Config**: `.bmg` file in the project root directory.
    3.  **Dotenv Config**: `.env` file in the project root directory.
    4.  **Fallback**: `None`, environment variables only.

    Returns:
        Optional[str]: The absolute path to the configuration file, or `None` if not found.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    bmg_path: Path = PROJECT_ROOT / BMG_FILENAME
    if bmg_path.exists():
        return str(bmg_path)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=True)


class Settings(BaseSettings):
    """
    Application configuration settings model.

    **Configuration Groups:**
    *   **Server**: Host, port, debug mode, log level, CORS.
    *   **Database**: MongoDB connection details.
    *   **Mail**: HTTP mail relay used for trip invitations.
    *   **Frontend**: Base URL used to build links sent by email.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Server configuration
    HOST: str = "127.0.0.1"
    PORT: int = 5555
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    # MongoDB configuration
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "BeMyGuide"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000

    # Authentication (optional)
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None

    # Mail relay; invitations are only logged when MAIL_API_URL is empty
    MAIL_API_URL: str = ""
    MAIL_API_KEY: Optional[SecretStr] = None
    MAIL_SENDER: str = "Be My Guide <no-reply@bemyguide.app>"
    MAIL_TIMEOUT: float = 10.0

    # Links embedded in emails
    FRONTEND_BASE_URL: str = "http://localhost:3000"

    @field_validator("MONGODB_URL", mode="before")
    @classmethod
    def no_empty_urls(cls, v: Any, info: Any) -> Any:
        """
        Validates that the MongoDB URL is not empty.

        Raises:
            ValueError: If the URL is empty or whitespace.
        """
        if not v or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .bmg and not empty!")
        return v

    @field_validator("MONGODB_CONNECTION_TIMEOUT", "MONGODB_SERVER_SELECTION_TIMEOUT", mode="before")
    @classmethod
    def validate_positive_integers(cls, v: Any, info: Any) -> int:
        """
        Validates that timeouts are positive integers (milliseconds).

        Raises:
            ValueError: If the value is not a positive integer.
        """
        value = int(v)
        if value <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return value

    @field_validator("MAIL_TIMEOUT", mode="before")
    @classmethod
    def validate_mail_timeout(cls, v: Any) -> float:
        timeout = float(v)
        if timeout <= 0 or timeout > 300:
            raise ValueError("MAIL_TIMEOUT must be between 0 and 300 seconds")
        return timeout

    @property
    def is_production(self) -> bool:
        """Production mode is defined as `DEBUG=False`."""
        return not self.DEBUG

    @property
    def mail_enabled(self) -> bool:
        return bool(self.MAIL_API_URL.strip())

    @property
    def cors_origins_list(self) -> List[str]:
        """Split the comma-separated `CORS_ORIGINS` value."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings: Settings = Settings()
