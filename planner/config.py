"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Remote API
    api_url: str = os.getenv("API_URL", "https://to-do-list-vsb8.onrender.com")
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "15"))

    # Persisted session (access token, refresh token, cached user)
    session_db_path: str = os.getenv("SESSION_DB_PATH", "data/session.db")

    # Where auth failures send the browser
    login_path: str = os.getenv("LOGIN_PATH", "/login")

    # Server
    server_host: str = os.getenv("SERVER_HOST", "0.0.0.0")
    server_port: int = int(os.getenv("SERVER_PORT", "8000"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
