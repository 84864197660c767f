from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

from workiz_sync.main import parse_lookback_days

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=True)
    APP_TITLE: str = "Workiz Sync API"

    # required for /api/sync; optional here so the app still boots without them
    WORKIZ_API_TOKEN: Optional[str] = None
    SPREADSHEET_ID: Optional[str] = None
    GOOGLE_SERVICE_ACCOUNT_KEY: Optional[str] = None       # JSON text
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None   # or a key file path

    SHEET_NAME: str = "Sheet1"
    JOB_SOURCE: Optional[str] = None
    SYNC_LOOKBACK_DAYS: int = 7
    SYNC_LOG_ENABLED: bool = False

    CORS_ORIGINS: List[AnyHttpUrl] = [
        "http://localhost:3000",
    ]

    @field_validator("SYNC_LOOKBACK_DAYS", mode="before")
    @classmethod
    def _lookback(cls, v):
        # same fallback as the CLI: bad values mean the default window
        return parse_lookback_days(v)

    @property
    def sync_configured(self) -> bool:
        return bool(
            self.WORKIZ_API_TOKEN
            and self.SPREADSHEET_ID
            and (self.GOOGLE_SERVICE_ACCOUNT_KEY or self.GOOGLE_APPLICATION_CREDENTIALS)
        )

def get_settings() -> Settings:
    return Settings()  # type: ignore
