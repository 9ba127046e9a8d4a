# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Supabase Postgres connection string, or sqlite:// locally)

    Needed for authenticated / image routes:
      - SUPABASE_URL
      - SUPABASE_SERVICE_ROLE_KEY (Storage uploads bypass RLS)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)
    """

    PROJECT_NAME: str = "Catalog Backend"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str = ""
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Image storage
    STORAGE_BUCKET: str = "catalog"
    STORAGE_FOLDER: str = "products"
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    IMAGE_UPLOAD_CONCURRENCY: int = 4

    # Listing
    DEFAULT_PAGE_LIMIT: int = 10
    MAX_PAGE_LIMIT: int = 100

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
