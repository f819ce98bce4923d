from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./nanocart.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    # Left empty at import; minting or verifying a token without it fails loudly
    SECRET_KEY: str = ""
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30  # Admin/SubAdmin access token paired with a refresh token
    SESSION_TOKEN_EXPIRE_HOURS: int = 24  # Standalone User/Partner token
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # App Settings
    APP_NAME: str = "NanoCart Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # SMS Gateway (MSG91 OTP API)
    MSG91_AUTH_KEY: str = ""  # MSG91 Auth Key
    MSG91_TEMPLATE_ID_OTP: str = ""  # DLT Template ID for OTP
    MSG91_BASE_URL: str = "https://control.msg91.com/api/v5"
    MSG91_TIMEOUT_SECONDS: int = 10
    OTP_EXPIRY_MINUTES: int = 10
    OTP_LENGTH: int = 6

    # Firebase (identity tokens for the federated signup/login flow)
    FIREBASE_PROJECT_ID: str = ""
    FIREBASE_CREDENTIALS_FILE: Optional[str] = None  # Service account JSON path

    # Supabase Storage Settings
    SUPABASE_URL: str = ""  # e.g., "https://xxxx.supabase.co"
    SUPABASE_SERVICE_KEY: str = ""  # Service role key (NOT anon key)
    SUPABASE_STORAGE_BUCKET: str = "uploads"  # Default bucket name
    BANNER_FOLDER_PREFIX: str = "Nanocart/HomePageBanner"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin for origin in self.CORS_ORIGINS if origin]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
