"""
Stock Ledger Configuration
Core settings for the stock ledger reconciliation service
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from datetime import date
from pathlib import Path


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    # Application Info
    APP_NAME: str = "Stock Ledger API"
    APP_VERSION: str = "1.4.0"
    DEBUG: bool = False

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./stockledger.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # CORS
    ALLOWED_HOSTS: list = ["*"]  # Change in production
    CORS_ORIGINS: list = [
        "http://localhost:3000",  # Next.js frontend
        "http://localhost:3001",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Path = Path("logs")
    LOG_TO_FILE: bool = False
    LOG_FILE: str = "app.log"
    ERROR_LOG_FILE: str = "error.log"
    LEDGER_LOG_FILE: str = "ledger.log"
    RRP_LOG_FILE: str = "rrp.log"

    # Ledger Settings
    # Baselines (open_quantity/open_amount) are anchored at this date
    LEDGER_EPOCH_DATE: date = date(2025, 7, 17)
    # Receipts for these SKUs come from confirmed purchase transactions at zero cost
    BULK_ZERO_COST_CODES: List[str] = ["GT 00000"]
    # Issues for these SKUs keep their recorded cost during FIFO costing
    FIXED_ISSUE_COST_CODES: List[str] = ["GT 07986", "GT 00000"]
    # Applicable-equipment tag marking a SKU as consumable
    CONSUMABLE_MARKER: str = "consumable"

    # RRP Numbering
    RRP_PREFIXES: List[str] = ["L", "F"]
    CURRENT_FISCAL_YEAR: Optional[str] = None

    # Financial Precision
    # Issue costs and pro-rata deferred amounts are rounded to this many places
    COST_DECIMAL_PLACES: int = 4

    # API Configuration
    API_V1_STR: str = "/api/v1"
    DOCS_URL: str = "/docs"
    REDOC_URL: str = "/redoc"
    OPENAPI_URL: str = "/openapi.json"

    @field_validator("RRP_PREFIXES")
    @classmethod
    def normalize_prefixes(cls, v: List[str]) -> List[str]:
        """RRP prefixes are single upper-case letters"""
        prefixes = [p.strip().upper() for p in v if p and p.strip()]
        for prefix in prefixes:
            if len(prefix) != 1 or not prefix.isalpha():
                raise ValueError(f"Invalid RRP prefix: {prefix!r}")
        return prefixes

    @field_validator("LOG_DIR", mode="before")
    @classmethod
    def coerce_log_dir(cls, v):
        return Path(v) if isinstance(v, str) else v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


# Global settings instance
settings = Settings()

# Database connection string for SQLAlchemy
DATABASE_URL = settings.DATABASE_URL
