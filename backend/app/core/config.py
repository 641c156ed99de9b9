# app/core/config.py

from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PEPPER = "pepper"
DEFAULT_SALT = "salt"


class Settings(BaseSettings):
    PROJECT_NAME: str = "Anon Drop"
    ENVIRONMENT: str = "development"

    # Store - required, startup fails without it
    MONGODB_URI: str
    MONGODB_DB_NAME: str = "anon_drop"
    MONGODB_COLLECTION: str = "messages"
    STORE_TIMEOUT_SECONDS: float = 10.0

    # Encryption - defaults are NOT safe for a real deployment
    ENCRYPTION_PEPPER: str = DEFAULT_PEPPER
    ENCRYPTION_SALT: str = DEFAULT_SALT

    CORS_ORIGINS: List[str] = ["*"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str):
            v = v.strip("[").strip("]").strip('"').strip("'")
            if not v:
                return []
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # Rate limits (slowapi syntax)
    RATE_LIMIT_ENABLED: bool = True
    SEND_RATE_LIMIT: str = "30/minute"
    FETCH_RATE_LIMIT: str = "60/minute"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def uses_default_secrets(self) -> bool:
        return (
            self.ENCRYPTION_PEPPER == DEFAULT_PEPPER
            or self.ENCRYPTION_SALT == DEFAULT_SALT
        )


settings = Settings()
