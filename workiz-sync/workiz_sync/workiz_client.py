"""
workiz_client.py
Pull jobs from the Workiz REST API (v1).

- Paginates /job/all/ with offset/records until a short page
- Retries 429/5xx and network errors with backoff (honours Retry-After)
- start_date is applied server-side (Workiz filters on CREATED date);
  end_date and JobSource are filtered locally
"""

from __future__ import annotations

import os
import time
import random
import logging
from datetime import datetime, date
from typing import Any, Dict, List, Optional, Tuple

import requests

LOG = logging.getLogger("workiz_sync.workiz_client")

API_ROOT = os.environ.get("WORKIZ_API_ROOT", "https://api.workiz.com/api/v1").rstrip("/")

PAGE_SIZE = 100
TIMEOUT_S = float(os.environ.get("WORKIZ_TIMEOUT", "15"))
MAX_RETRIES = 4
BACKOFF_BASE_S = 1.5
PAGE_PAUSE_S = 0.15

RETRY_STATUSES = (429, 500, 502, 503, 504)

DATE_KEYS = ["CreatedDate", "JobDateTime"]


class WorkizError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


def redact_token(tok: str) -> str:
    return f"{tok[:4]}…{tok[-4:]}" if len(tok or "") > 10 else "***"


def _sleep_backoff(attempt: int, retry_after: Optional[str] = None) -> None:
    if retry_after:
        try:
            time.sleep(float(retry_after))
            return
        except ValueError:
            pass
    time.sleep(BACKOFF_BASE_S * (2 ** (attempt - 1)) + random.uniform(0, 0.5))


def _normalize_payload(obj: Any) -> Tuple[List[Dict[str, Any]], Optional[bool]]:
    """Return (rows, has_more) from any of the shapes Workiz answers with."""
    if isinstance(obj, list):
        return obj, None
    if isinstance(obj, dict):
        if obj.get("error") is True:
            return [], None
        has_more = obj.get("has_more")
        if isinstance(obj.get("data"), list):
            return obj["data"], (bool(has_more) if has_more is not None else None)
    return [], None


def _get(session: requests.Session, url: str, params: Dict[str, Any], url_redacted: str) -> Any:
    attempt = 0
    while True:
        attempt += 1
        try:
            r = session.get(url, params=params, timeout=TIMEOUT_S)
        except requests.RequestException as e:
            if attempt >= MAX_RETRIES:
                raise WorkizError(f"Workiz request failed after {attempt} attempts: {e}") from e
            LOG.warning("Workiz network error %s (attempt %d/%d)", e, attempt, MAX_RETRIES)
            _sleep_backoff(attempt)
            continue

        LOG.debug("GET %s offset=%s -> %s", url_redacted, params.get("offset"), r.status_code)
        if r.status_code == 200:
            try:
                return r.json()
            except ValueError as e:
                raise WorkizError("Workiz returned a non-JSON body", r.status_code, r.text[:220]) from e
        if r.status_code in RETRY_STATUSES and attempt < MAX_RETRIES:
            LOG.warning("Workiz API %s. Retrying (attempt %d/%d).", r.status_code, attempt, MAX_RETRIES)
            _sleep_backoff(attempt, r.headers.get("Retry-After"))
            continue
        raise WorkizError(
            f"Error fetching jobs from Workiz API: HTTP {r.status_code}",
            r.status_code,
            (r.text or "")[:220],
        )


def _parse_day(val: Any) -> Optional[date]:
    if not val or not isinstance(val, str):
        return None
    try:
        return datetime.strptime(val.strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def job_day(job: Dict[str, Any]) -> Optional[date]:
    for k in DATE_KEYS:
        d = _parse_day(job.get(k))
        if d:
            return d
    return None


def _keep(job: Dict[str, Any], end: Optional[date], source: Optional[str]) -> bool:
    if source is not None:
        if str(job.get("JobSource") or "").strip().lower() != source:
            return False
    if end is not None:
        d = job_day(job)
        if d and d > end:
            return False
    return True


def fetch_jobs(
    token: str,
    start_date: str,
    *,
    end_date: Optional[str] = None,
    source: Optional[str] = None,
    only_open: bool = False,
    session: Optional[requests.Session] = None,
) -> List[Dict[str, Any]]:
    """
    Fetch all jobs created on/after ``start_date`` (YYYY-MM-DD).
    :param end_date: inclusive upper bound, checked against CreatedDate/JobDateTime
    :param source: keep only jobs whose JobSource matches (case-insensitive)
    """
    if not token:
        raise WorkizError("WORKIZ_API_TOKEN is not set")
    end = _parse_day(end_date) if end_date else None
    if end_date and end is None:
        LOG.warning("Ignoring unparseable end_date %r", end_date)
    src = source.strip().lower() if source and source.strip() else None

    sess = session or requests.Session()
    url = f"{API_ROOT}/{token}/job/all/"
    url_r = f"{API_ROOT}/{redact_token(token)}/job/all/"

    LOG.info("Fetching jobs from Workiz API starting from %s%s%s",
             start_date,
             f" to {end_date}" if end else "",
             f" (source={source})" if src else "")

    out: List[Dict[str, Any]] = []
    seen = set()
    offset = 0
    while True:
        params = {
            "start_date": start_date,
            "offset": offset,
            "records": PAGE_SIZE,
            "only_open": "true" if only_open else "false",
        }
        page, has_more = _normalize_payload(_get(sess, url, params, url_r))
        n = len(page)
        LOG.info("  [job] page @offset %d: %d row(s)", offset, n)
        if n:
            first = page[0].get("UUID") if isinstance(page[0], dict) else None
            last = page[-1].get("UUID") if isinstance(page[-1], dict) else None
            sig = (n, first, last)
            if sig in seen:
                LOG.warning("Repeated page signature; stopping pagination.")
                break
            seen.add(sig)
        out.extend(p for p in page if isinstance(p, dict))
        if n < PAGE_SIZE or has_more is False:
            break
        offset += PAGE_SIZE
        time.sleep(PAGE_PAUSE_S)

    kept = [j for j in out if _keep(j, end, src)]
    LOG.info("Fetched %d job(s) from Workiz API (%d after filters).", len(out), len(kept))
    return kept
