from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional

load_dotenv()


class Config(BaseSettings):
    APP_NAME: str = "TrueAstroTalk Admin API"
    ENVIRONMENT: str = "production"  # development | production | test
    DEBUG: bool = False

    # Database (optional: account checks and error-log persistence)
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DB_NAME: Optional[str] = None
    DB_HOST: Optional[str] = None
    DB_PORT: int = 5432
    ERROR_LOG_PERSISTENCE_ENABLED: bool = False

    # JWT Configuration
    SECRET_KEY: str = Field(..., min_length=32)
    ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "trueastrotalk-api"
    JWT_AUDIENCE: str = "trueastrotalk-app"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 90

    # Authentication
    AUTH_COOKIE_FALLBACK: bool = True
    AUTH_COOKIE_NAME: str = "auth-token"
    AUTH_VERIFY_ACCOUNT: bool = False

    # CSRF
    CSRF_COOKIE_NAME: str = "csrf-token"
    CSRF_HEADER_NAME: str = "x-csrf-token"
    CSRF_TOKEN_BYTES: int = 32
    CSRF_TOKEN_MAX_AGE_SECONDS: int = 60 * 60 * 24

    # Request guards
    MAX_REQUEST_SIZE_BYTES: int = 10 * 1024 * 1024
    CORS_ORIGINS: list[str] = Field(default_factory=list)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def database_configured(self) -> bool:
        return all((self.DB_USER, self.DB_PASSWORD, self.DB_NAME, self.DB_HOST))

    @property
    def db_url(self):
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

config = Config()
