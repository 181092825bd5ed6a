from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Sole Survivor League"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/sole_survivor"

    # JWT
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440  # 24 hours

    # Registration key that grants admin
    admin_key: str = "changeme"

    cors_origins: list[str] = ["*"]

    # API client
    api_base_url: str = "http://localhost:8000"
    client_timeout: float = 10.0
    client_max_attempts: int = 3
    client_backoff_base: float = 0.5

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache()
def get_settings() -> Settings:
    return Settings()
