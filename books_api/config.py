from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv(".env")


class Settings(BaseSettings):
    app_name: str = "Books API"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 2112
    log_level: str = "INFO"
    seed_books: bool = True
    require_https: bool = False
    cors_origins: str = ""
    service_name: str = "books-api"
    otlp_endpoint: str | None = None

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def get_settings() -> Settings:
    settings = Settings()
    if settings.require_https and settings.otlp_endpoint and not settings.otlp_endpoint.startswith("https://"):
        raise RuntimeError("APP_REQUIRE_HTTPS is true but the OTLP endpoint is not HTTPS")
    return settings
