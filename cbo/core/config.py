from pydantic_settings import BaseSettings
from typing import List, Optional
from pathlib import Path

# Find .env file - check cbo/ directory first, then project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
APP_ENV = BASE_DIR / "cbo" / ".env"
ROOT_ENV = BASE_DIR / ".env"

# Use cbo/.env if it exists, otherwise try root .env
env_file = str(APP_ENV) if APP_ENV.exists() else (str(ROOT_ENV) if ROOT_ENV.exists() else ".env")


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Numbering
    MEMBER_NUMBER_PREFIX: str = "ALF"
    LOAN_NUMBER_PREFIX: str = "LN"

    # Lending / savings rules
    DEFAULT_INTEREST_RATE: float = 10.0
    ALLOW_NEGATIVE_SAVINGS: bool = False

    # Audit
    AUDIT_LOG_DIR: Optional[str] = None

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    class Config:
        env_file = env_file
        case_sensitive = True


settings = Settings()

# Derived paths
LOGS_DIR = Path(settings.AUDIT_LOG_DIR) if settings.AUDIT_LOG_DIR else BASE_DIR / "logs"
