"""
sheets_updater.py
Read the job tab snapshot and apply an UpsertPlan to Google Sheets.

Tabs handled (created if missing):
- <SHEET_NAME> (jobs, keyed by UUID in column A)
- sync_log     (one audit row per run, optional)

Batched writes with client-side throttle and backoff.
"""

import os
import json
import time
import random
import logging
from typing import Dict, List, Optional, Sequence

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from workiz_sync.reconciler import UpsertPlan

LOG = logging.getLogger("workiz_sync.sheets_updater")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Gentle client-side throttle between calls (seconds)
_RATE_LIMIT_SECONDS = float(os.getenv("SHEETS_RATE_LIMIT_SECONDS", "0.5"))

RETRY_STATUSES = (429, 500, 502, 503, 504)
BATCH_SIZE = 200

SYNC_LOG_TITLE = "sync_log"
SYNC_LOG_HEADERS = [
    "timestamp_iso", "start_date", "end_date", "source", "fetched",
    "updated", "appended", "skipped", "dry_run", "status", "notes",
]

_last_call_ts = 0.0


def get_service(*, credentials_json: Optional[str] = None, credentials_file: Optional[str] = None):
    """
    Build a Sheets v4 client from a service account.
    The JSON key text wins over a key file path; env vars are the fallback.
    """
    credentials_json = credentials_json or os.environ.get("GOOGLE_SERVICE_ACCOUNT_KEY")
    credentials_file = credentials_file or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if credentials_json:
        try:
            info = json.loads(credentials_json)
        except ValueError as e:
            raise RuntimeError("GOOGLE_SERVICE_ACCOUNT_KEY is not valid JSON") from e
        creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    elif credentials_file:
        if not os.path.exists(credentials_file):
            raise RuntimeError(f"Service account file not found: {credentials_file}")
        creds = service_account.Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
    else:
        raise RuntimeError("Google service account key missing")
    svc = build("sheets", "v4", credentials=creds, cache_discovery=False)
    LOG.info("Authenticated with Google Sheets API.")
    return svc


def _rate_limit():
    global _last_call_ts
    if _RATE_LIMIT_SECONDS <= 0: return
    now = time.time()
    wait = _RATE_LIMIT_SECONDS - (now - _last_call_ts)
    if wait > 0: time.sleep(wait)
    _last_call_ts = time.time()


def _status_of(e: HttpError) -> Optional[int]:
    status = getattr(e, "status_code", None)
    if status is None and getattr(e, "resp", None) is not None:
        status = getattr(e.resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _retry_after(e: HttpError) -> Optional[float]:
    resp = getattr(e, "resp", None)
    if resp is None or not hasattr(resp, "get"):
        return None
    # httplib2.Response is a dict with lower-cased header names
    val = resp.get("retry-after")
    if val is None:
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def execute_with_backoff(req, *, max_attempts: int = 8, base: float = 0.8, jitter: float = 0.5):
    attempt = 0
    while True:
        try:
            _rate_limit()
            return req.execute(num_retries=0)
        except HttpError as e:
            status = _status_of(e)
            # retry on quota / transient errors only
            if status not in RETRY_STATUSES:
                raise
            attempt += 1
            if attempt >= max_attempts:
                LOG.error("Sheets API %s. Giving up after %d attempt(s).", status, attempt)
                raise
            sleep_s = _retry_after(e)
            if sleep_s is None:
                sleep_s = base * (2 ** (attempt - 1)) + random.uniform(0, jitter)
            LOG.warning("Sheets API %s. Backoff %.2fs (attempt %d/%d).", status, sleep_s, attempt, max_attempts)
            time.sleep(sleep_s)


def col_letter(n: int) -> str:
    res = ""
    while n:
        n, r = divmod(n - 1, 26)
        res = chr(65 + r) + res
    return res


def _quote(title: str) -> str:
    # A1 notation needs quotes around titles with spaces/punctuation
    if title.replace("_", "").isalnum():
        return title
    return "'" + title.replace("'", "''") + "'"


def ensure_sheet(service, spreadsheet_id: str, title: str, headers: Sequence[str]) -> None:
    spreadsheets = service.spreadsheets()
    values = spreadsheets.values()
    meta = execute_with_backoff(spreadsheets.get(spreadsheetId=spreadsheet_id, includeGridData=False))
    existing_titles = {s.get("properties", {}).get("title") for s in meta.get("sheets", [])}
    if title not in existing_titles:
        execute_with_backoff(spreadsheets.batchUpdate(spreadsheetId=spreadsheet_id, body={"requests": [
            {"addSheet": {"properties": {"title": title, "gridProperties": {"frozenRowCount": 1}}}}
        ]}))
        LOG.info("Created tab '%s'.", title)

    resp = execute_with_backoff(values.get(spreadsheetId=spreadsheet_id, range=f"{_quote(title)}!1:1"))
    current = resp.get("values", [[]])[0] if resp.get("values") else []
    if list(current) != list(headers):
        execute_with_backoff(values.update(
            spreadsheetId=spreadsheet_id,
            range=f"{_quote(title)}!A1:{col_letter(len(headers))}1",
            valueInputOption="RAW",
            body={"values": [list(headers)]},
        ))
        LOG.info("Wrote header row to '%s' (%d column(s)).", title, len(headers))


def read_rows(service, spreadsheet_id: str, title: str) -> List[List[str]]:
    values = service.spreadsheets().values()
    resp = execute_with_backoff(values.get(spreadsheetId=spreadsheet_id, range=f"{_quote(title)}!A2:ZZ"))
    rows = resp.get("values", []) or []
    LOG.info("Retrieved %d row(s) from Google Sheet '%s'.", len(rows), title)
    return rows


def _chunks(seq, size):
    for i in range(0, len(seq), size):
        yield seq[i:i + size]


def apply_plan(service, spreadsheet_id: str, title: str, plan: UpsertPlan, *,
               width: int, batch_size: int = BATCH_SIZE) -> Dict[str, int]:
    values = service.spreadsheets().values()
    last_col = col_letter(width)
    qt = _quote(title)

    updated = 0
    for batch in _chunks(plan.updates, batch_size):
        data = [{
            "range": f"{qt}!A{u.row_number}:{last_col}{u.row_number}",
            "majorDimension": "ROWS",
            "values": [u.values],
        } for u in batch]
        execute_with_backoff(values.batchUpdate(spreadsheetId=spreadsheet_id, body={
            "valueInputOption": "RAW", "data": data,
        }))
        updated += len(batch)
        LOG.info("Updated %d row(s) in '%s' (%d/%d).", len(batch), title, updated, len(plan.updates))

    appended = 0
    for batch in _chunks(plan.appends, batch_size):
        execute_with_backoff(values.append(
            spreadsheetId=spreadsheet_id, range=f"{qt}!A:{last_col}", valueInputOption="RAW",
            insertDataOption="INSERT_ROWS", body={"values": batch}
        ))
        appended += len(batch)
        LOG.info("Appended %d new row(s) to '%s' (%d/%d).", len(batch), title, appended, len(plan.appends))

    return {"updated": updated, "appended": appended}


def append_sync_log(service, spreadsheet_id: str, row: List[str], title: str = SYNC_LOG_TITLE) -> None:
    ensure_sheet(service, spreadsheet_id, title, SYNC_LOG_HEADERS)
    values = service.spreadsheets().values()
    execute_with_backoff(values.append(
        spreadsheetId=spreadsheet_id, range=f"{_quote(title)}!A:{col_letter(len(SYNC_LOG_HEADERS))}",
        valueInputOption="RAW", insertDataOption="INSERT_ROWS", body={"values": [row]}
    ))
