# =====================================================
# FILE: hrflow/core/config.py
# Application Settings
# =====================================================

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    # ---------------------------
    # Meta / Pydantic settings
    # ---------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ---------------------------
    # API / Project
    # ---------------------------
    PROJECT_NAME: str = "HR Approval Workflow"
    API_V1_STR: str = "/api/v1"
    # Comma separated; "*" allows every origin
    ALLOWED_ORIGINS: str = "*"
    PORT: int = 8000

    # ---------------------------
    # Environment / Logging
    # ---------------------------
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ---------------------------
    # Database
    # ---------------------------
    # When set, DATABASE_URL wins over the DB_* components (sqlite for tests)
    DATABASE_URL: Optional[str] = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "hrflow"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_PRE_PING: bool = True
    DB_ECHO: bool = False

    # ---------------------------
    # Organisation
    # ---------------------------
    HR_DEPT_CODE: str = "HR"
    ORG_ADMIN_MIN_JOB_LEVEL: int = 2
    HR_CONTRACT_PERMISSION: str = "HR_CONTRACT"
    DEFAULT_DUTY_SYMBOL: str = "N"

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
