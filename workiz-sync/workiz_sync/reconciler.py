"""
reconciler.py
Diff fetched jobs against the current sheet snapshot by job UUID.

Nothing here talks to an API: plan_upserts() returns which sheet rows to
overwrite and which rows to append, and sheets_updater.apply_plan() writes them.

Sheet layout assumed:
- row 1 is the header
- data rows start at row 2
- the key (UUID) lives in column ``key_col`` (A by default)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Sequence

from workiz_sync.formatter import format_job, job_key

LOG = logging.getLogger("workiz_sync.reconciler")

FIRST_DATA_ROW = 2


@dataclass
class RowUpdate:
    row_number: int
    values: List[str]


@dataclass
class UpsertPlan:
    updates: List[RowUpdate] = field(default_factory=list)
    appends: List[List[str]] = field(default_factory=list)
    skipped: int = 0

    @property
    def total(self) -> int:
        return len(self.updates) + len(self.appends)


def index_rows(rows: Sequence[Sequence[str]], key_col: int = 0) -> Dict[str, int]:
    """Map key -> 1-based sheet row number. First occurrence wins; blanks ignored."""
    mapping: Dict[str, int] = {}
    for i, row in enumerate(rows, start=FIRST_DATA_ROW):
        if key_col < len(row):
            k = str(row[key_col] or "").strip()
            if k:
                mapping.setdefault(k, i)
    return mapping


def plan_upserts(
    jobs: Iterable[Dict[str, Any]],
    existing_rows: Sequence[Sequence[str]],
    *,
    key_col: int = 0,
    formatter: Callable[[Dict[str, Any]], List[str]] = format_job,
) -> UpsertPlan:
    plan = UpsertPlan()
    by_key = index_rows(existing_rows, key_col)

    # key -> formatted row; dict keeps first-seen order, later duplicates overwrite
    latest: Dict[str, List[str]] = {}
    for job in jobs:
        k = job_key(job)
        if not k:
            plan.skipped += 1
            LOG.warning("Job without UUID found, skipping (SerialId=%s).", job.get("SerialId", ""))
            continue
        if k in latest:
            LOG.info("Job %s appears more than once in this batch; keeping the last record.", k)
        latest[k] = formatter(job)

    for k, row in latest.items():
        row_number = by_key.get(k)
        if row_number:
            plan.updates.append(RowUpdate(row_number, row))
        else:
            plan.appends.append(row)

    plan.updates.sort(key=lambda u: u.row_number)
    LOG.info(
        "Planned %d update(s), %d append(s), %d skipped (snapshot=%d row(s)).",
        len(plan.updates), len(plan.appends), plan.skipped, len(existing_rows),
    )
    return plan
