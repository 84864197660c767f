"""
Workiz Job Sync Package

This package pulls Workiz jobs for a date window and upserts them into a
Google Sheets tab keyed by job UUID (column A).

Modules:
- main.py           : entry point / run_sync() orchestration
- workiz_client.py  : paginated Workiz /job/all/ fetch with retries
- formatter.py      : job dict -> sheet row
- reconciler.py     : diff jobs vs. sheet snapshot -> updates + appends
- sheets_updater.py : read snapshot, batched writes with backoff, sync_log
"""

__version__ = "0.1.0"

from .main import run_sync

__all__ = ["run_sync"]
