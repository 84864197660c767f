import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.schemas import SyncRequest, SyncResponse
from workiz_sync.main import resolve_start_date, run_sync

LOG = logging.getLogger("workiz_sync.api")

router = APIRouter(prefix="/api", tags=["sync"])

@router.post("/sync", response_model=SyncResponse, response_model_exclude_none=True)
def trigger_sync(payload: Optional[SyncRequest] = None):
    s = get_settings()
    if not s.sync_configured:
        LOG.error("Missing required environment variables.")
        return JSONResponse(status_code=500, content={"error": "Missing required environment variables for sync"})

    payload = payload or SyncRequest()
    start = resolve_start_date(payload.startDate, days=s.SYNC_LOOKBACK_DAYS)
    LOG.info("API sync trigger received. Start date: %s", start)

    try:
        result = run_sync(
            token=s.WORKIZ_API_TOKEN,
            spreadsheet_id=s.SPREADSHEET_ID,
            sheet_name=s.SHEET_NAME,
            start_date=start,
            end_date=payload.endDate,
            source=payload.source or s.JOB_SOURCE,
            dry_run=payload.dryRun,
            credentials_json=s.GOOGLE_SERVICE_ACCOUNT_KEY,
            credentials_file=s.GOOGLE_APPLICATION_CREDENTIALS,
            write_log=s.SYNC_LOG_ENABLED,
        )
    except Exception as e:
        LOG.error("Sync failed: %s", e)
        return JSONResponse(status_code=500, content={"error": f"Sync failed: {e}"})

    # only echoed back when a dry run was asked for
    dry_flag = True if payload.dryRun else None
    if not result.fetched:
        return SyncResponse(message="No jobs retrieved to sync.", startDate=start, dryRun=dry_flag)
    return SyncResponse(
        message="Sync completed successfully.",
        jobsSynced=result.fetched,
        updated=result.updated,
        appended=result.appended,
        skipped=result.skipped,
        startDate=start,
        dryRun=dry_flag,
    )
