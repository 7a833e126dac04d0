from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "form-builder"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    STORAGE_BACKEND: str = "memory"  # memory | database
    DATABASE_URL: str = "sqlite+pysqlite:///./forms.db"
    DATABASE_ECHO: bool = False

    FORMS_API_URL: str = "http://localhost:8000"
    FORMS_API_TIMEOUT_SECONDS: float = 15.0

    EDITOR_HISTORY_LIMIT: int = 50

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def storage_backend(self) -> str:
        return str(self.STORAGE_BACKEND or "").strip().lower() or "memory"

settings = Settings()
