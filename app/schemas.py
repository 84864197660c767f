from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator

class SyncRequest(BaseModel):
    # free text on purpose: a bad startDate falls back to the default window
    startDate: Optional[str] = Field(None, description="YYYY-MM-DD; defaults to today minus the lookback")
    endDate: Optional[str] = Field(None, description="YYYY-MM-DD, inclusive")
    source: Optional[str] = Field(None, description="Only jobs with this JobSource")
    dryRun: bool = False

    @field_validator("startDate", "endDate", mode="before")
    @classmethod
    def _non_text_is_unset(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None

class SyncResponse(BaseModel):
    message: str
    jobsSynced: int = 0
    updated: Optional[int] = None
    appended: Optional[int] = None
    skipped: Optional[int] = None
    startDate: str
    dryRun: Optional[bool] = None
