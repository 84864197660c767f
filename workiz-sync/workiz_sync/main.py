"""
Main entry for the Workiz -> Google Sheets job sync.

Env (required):
  WORKIZ_API_TOKEN
  SPREADSHEET_ID
  GOOGLE_SERVICE_ACCOUNT_KEY  (JSON text)  or  GOOGLE_APPLICATION_CREDENTIALS (path)

Env (optional):
  SHEET_NAME          = target tab                 (default: Sheet1)
  START_DATE          = YYYY-MM-DD                 (default: today - SYNC_LOOKBACK_DAYS)
  END_DATE            = YYYY-MM-DD                 (default: none)
  JOB_SOURCE          = keep only this JobSource   (default: all)
  SYNC_LOOKBACK_DAYS  = int                        (default: 7)
  SYNC_LOG_ENABLED    = "true" | "false"           (default: false)
  DRY_RUN             = "true" | "false"           (default: false)
"""

import os
import re
import sys
import argparse
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional

from dotenv import load_dotenv

from workiz_sync import workiz_client, reconciler, sheets_updater
from workiz_sync.formatter import HEADERS

LOG = logging.getLogger("workiz_sync")

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DEFAULT_LOOKBACK_DAYS = 7


@dataclass
class SyncResult:
    fetched: int = 0
    updated: int = 0
    appended: int = 0
    skipped: int = 0
    dry_run: bool = False
    start_date: str = ""
    end_date: Optional[str] = None
    source: Optional[str] = None


def _as_bool(s: str, default=False) -> bool:
    if s is None:
        return default
    return s.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_lookback_days(value) -> int:
    """Non-integer or negative values fall back to the default with a warning."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_LOOKBACK_DAYS
    try:
        days = int(value)
    except (TypeError, ValueError):
        days = -1
    if days < 0:
        LOG.warning("Invalid SYNC_LOOKBACK_DAYS %r; using %d.", value, DEFAULT_LOOKBACK_DAYS)
        return DEFAULT_LOOKBACK_DAYS
    return days


def _lookback_days() -> int:
    return parse_lookback_days(os.environ.get("SYNC_LOOKBACK_DAYS"))


def default_start_date(today: Optional[date] = None, days: Optional[int] = None) -> str:
    today = today or datetime.utcnow().date()
    days = _lookback_days() if days is None else days
    return (today - timedelta(days=days)).isoformat()


def resolve_start_date(value: Optional[str], *, today: Optional[date] = None, days: Optional[int] = None) -> str:
    """Use ``value`` if it is a real YYYY-MM-DD date, otherwise the lookback default."""
    v = (value or "").strip()
    if DATE_RE.match(v):
        try:
            datetime.strptime(v, "%Y-%m-%d")
            return v
        except ValueError:
            pass
    if v:
        LOG.warning("Invalid start date %r; using default window.", value)
    return default_start_date(today, days)


def run_sync(
    *,
    token: str,
    spreadsheet_id: str,
    sheet_name: str = "Sheet1",
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    source: Optional[str] = None,
    dry_run: bool = False,
    service=None,
    credentials_json: Optional[str] = None,
    credentials_file: Optional[str] = None,
    write_log: bool = False,
) -> SyncResult:
    start = resolve_start_date(start_date)
    result = SyncResult(dry_run=dry_run, start_date=start, end_date=end_date, source=source or None)

    LOG.info("=== Workiz sync ===  START=%s  END=%s  SOURCE=%s  TAB=%s  DRY_RUN=%s",
             start, end_date or "-", source or "-", sheet_name, dry_run)

    # 1) Fetch
    jobs = workiz_client.fetch_jobs(token, start, end_date=end_date, source=source)
    result.fetched = len(jobs)
    if not jobs:
        LOG.info("No jobs retrieved to sync.")
        return result

    # 2) Snapshot
    if service is None:
        service = sheets_updater.get_service(credentials_json=credentials_json, credentials_file=credentials_file)
    sheets_updater.ensure_sheet(service, spreadsheet_id, sheet_name, HEADERS)
    rows = sheets_updater.read_rows(service, spreadsheet_id, sheet_name)

    # 3) Plan
    plan = reconciler.plan_upserts(jobs, rows)
    result.skipped = plan.skipped

    # 4) Apply
    if dry_run:
        LOG.info("DRY_RUN: would update %d row(s) and append %d row(s).", len(plan.updates), len(plan.appends))
        result.updated, result.appended = len(plan.updates), len(plan.appends)
    else:
        stats = sheets_updater.apply_plan(service, spreadsheet_id, sheet_name, plan, width=len(HEADERS))
        result.updated, result.appended = stats["updated"], stats["appended"]

    # 5) Optional audit row
    if write_log:
        try:
            sheets_updater.append_sync_log(service, spreadsheet_id, _log_row(result, "OK"))
        except Exception as e:
            LOG.warning("Failed to write sync_log: %s", e)

    LOG.info("Sync completed: fetched=%d updated=%d appended=%d skipped=%d",
             result.fetched, result.updated, result.appended, result.skipped)
    return result


def _log_row(r: SyncResult, status: str, note: str = "") -> List[str]:
    ts = datetime.utcnow().isoformat(timespec="seconds") + "Z"
    return [
        ts, r.start_date, r.end_date or "", r.source or "",
        str(r.fetched), str(r.updated), str(r.appended), str(r.skipped),
        "TRUE" if r.dry_run else "FALSE", status, note[:250],
    ]


def _parse_args(argv):
    p = argparse.ArgumentParser(prog="workiz-sync", description="Upsert Workiz jobs into a Google Sheet.")
    p.add_argument("--start-date", help="YYYY-MM-DD (default: today minus SYNC_LOOKBACK_DAYS)")
    p.add_argument("--end-date", help="YYYY-MM-DD, inclusive")
    p.add_argument("--source", help="only jobs with this JobSource")
    p.add_argument("--dry-run", action="store_true", help="plan only, write nothing")
    return p.parse_args(argv)


def main(argv=None) -> int:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    args = _parse_args(argv)

    token = os.environ.get("WORKIZ_API_TOKEN")
    spreadsheet_id = os.environ.get("SPREADSHEET_ID")
    creds_json = os.environ.get("GOOGLE_SERVICE_ACCOUNT_KEY")
    creds_file = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")

    if not token or not spreadsheet_id or not (creds_json or creds_file):
        LOG.error("Missing required env vars: WORKIZ_API_TOKEN, SPREADSHEET_ID and a Google service account key")
        return 1

    try:
        run_sync(
            token=token,
            spreadsheet_id=spreadsheet_id,
            sheet_name=os.environ.get("SHEET_NAME") or "Sheet1",
            start_date=args.start_date or os.environ.get("START_DATE"),
            end_date=args.end_date or os.environ.get("END_DATE") or None,
            source=args.source or os.environ.get("JOB_SOURCE") or None,
            dry_run=args.dry_run or _as_bool(os.environ.get("DRY_RUN"), default=False),
            credentials_json=creds_json,
            credentials_file=creds_file,
            write_log=_as_bool(os.environ.get("SYNC_LOG_ENABLED"), default=False),
        )
    except Exception as e:
        LOG.error("Sync failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
