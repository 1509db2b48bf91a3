from __future__ import annotations

import datetime
import logging
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("court-fees-api")


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite:///./court_fees.db", alias="DATABASE_URL")

    # Optional JSON registry of dated fee schedules; built-in tables when unset.
    schedule_path: str | None = Field(default=None, alias="COURT_FEE_SCHEDULE_PATH")
    freshness_days: int = Field(default=30, alias="COURT_FEE_DATA_FRESHNESS_DAYS")
    last_update: datetime.date | None = Field(default=None, alias="COURT_FEE_LAST_UPDATE")

    allow_origins: str = Field(default="*", alias="ALLOW_ORIGINS")

    model_config = {"env_file": ".env", "extra": "ignore", "populate_by_name": True}

    @property
    def sqlalchemy_url(self) -> str:
        parsed = urlparse(self.database_url)
        # Log parsed components (without password)
        logger.info(
            "DB target → scheme=%s host=%s db=%s",
            parsed.scheme, parsed.hostname, parsed.path.lstrip("/"),
        )
        if parsed.scheme in ("postgres", "postgresql"):
            return self.database_url.replace(f"{parsed.scheme}://", "postgresql+psycopg://", 1)
        return self.database_url

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.allow_origins.split(",") if o.strip()]
        return origins or ["*"]


settings = Settings()
