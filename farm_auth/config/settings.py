"""
Centralized configuration management for the farm portal authentication service.

This module provides a centralized configuration system using Pydantic BaseSettings
for managing all application settings including JWT, security, database, and API settings.
"""
import os
from typing import Annotated, List, Optional, Union

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    """
    Settings class for all application configuration.

    Values are read from environment variables (or a `.env` file) whose names
    match the field names exactly.
    """
    # Application settings
    APP_NAME: str = "Farm Portal Auth"
    APP_DESCRIPTION: str = "Authentication and profile service for the farmer portal"
    APP_ENV: str = "development"
    DEBUG: bool = False

    # API settings
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    RELOAD: bool = False

    # CORS settings
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(default=["*"])

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse CORS_ORIGINS from a comma separated string to a list."""
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return v
        raise ValueError(v)

    # JWT settings. Both secrets must be set, and must differ, before any
    # token can be signed or verified.
    JWT_ACCESS_SECRET: Optional[SecretStr] = None
    JWT_REFRESH_SECRET: Optional[SecretStr] = None
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Security settings
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)
    PASSWORD_MIN_LENGTH: int = 7

    # Database settings
    DATABASE_URL: Optional[str] = None
    DATABASE_ECHO: bool = False

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_url(cls, v: Optional[str]) -> str:
        """Set default SQLite database URL if not provided."""
        if isinstance(v, str) and v:
            return v

        # Default to SQLite database in project root
        base_dir = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
        return f"sqlite:///{os.path.join(base_dir, 'farm_auth.db')}"

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
        "validate_default": True,
    }


# Create a global settings instance
settings = Settings()


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """
    Get the application settings.

    Returns:
        Settings: The application settings instance.
    """
    return settings
