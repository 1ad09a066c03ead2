from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=os.getenv("ENV_FILE", ".env"), extra="ignore")

    APP_NAME: str = "emby-hub"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str = "please-change-me"
    SESSION_TTL_MINUTES: int = 60 * 24 * 7  # 7 days
    SESSION_COOKIE_NAME: str = "auth-token"
    SESSION_COOKIE_SECURE: bool = False

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/emby-hub.db"
    AUTO_CREATE_TABLES: bool = True

    REDIS_URL: str = "redis://localhost:6379/0"

    CORS_ORIGINS: str = ""  # comma separated
    UPSTREAM_TLS_VERIFY: bool = True
    HTTP_TIMEOUT_SECONDS: int = 10

    # first-run seeding
    BOOTSTRAP_ADMIN_USERNAME: str = "admin"
    BOOTSTRAP_ADMIN_PASSWORD: str = "admin123"
    BOOTSTRAP_ADMIN_NAME: str = "Administrator"
    DEFAULT_SERVER_URL: str = ""
    DEFAULT_SERVER_API_KEY: str = ""
    DEFAULT_SERVER_NAME: str = "Main Emby"

    # shared secret for unauthenticated scheduled sweeps
    CRON_SECRET: str = ""
    EXPIRY_SWEEP_SECONDS: int = 0  # 0 = no beat schedule

    DEFAULT_ACCOUNT_TEMPLATE: str = ""
    ONLINE_WINDOW_MINUTES: int = 5
    EXPIRING_SOON_DAYS: int = 7

    @property
    def cors_origins_list(self) -> List[str]:
        if not self.CORS_ORIGINS:
            return []
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
