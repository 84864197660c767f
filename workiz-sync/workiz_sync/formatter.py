"""
formatter.py
Flatten Workiz job dicts into sheet rows (one string per column).
"""

import json
from typing import Any, Dict, List, Sequence

JOB_FIELDS = [
    "UUID", "SerialId", "JobDateTime", "JobEndDateTime", "CreatedDate",
    "JobTotalPrice", "JobAmountDue", "SubTotal", "item_cost", "tech_cost",
    "ClientId", "Status", "SubStatus", "PaymentDueDate",
    "Phone", "SecondPhone", "PhoneExt", "SecondPhoneExt", "Email", "Comments",
    "FirstName", "LastName", "Company",
    "Address", "City", "State", "PostalCode", "Country", "Unit",
    "Latitude", "Longitude",
    "JobType", "ReferralCompany", "Timezone", "JobNotes", "JobSource",
    "CreatedBy", "ServiceArea", "LastStatusUpdate",
]

# Header row == field names; column A is the upsert key
HEADERS = list(JOB_FIELDS)
KEY_FIELD = "UUID"


def _join_list(field: str, items: List[Any]) -> str:
    if field == "Tags":
        return ",".join(str(t.get("tag", "")) if isinstance(t, dict) else str(t) for t in items)
    if field == "Team":
        return ",".join(str(t.get("name", "")) if isinstance(t, dict) else str(t) for t in items)
    return json.dumps(items, separators=(",", ":"), ensure_ascii=False)


def format_value(field: str, val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, list):
        return _join_list(field, val)
    if isinstance(val, dict):
        return json.dumps(val, separators=(",", ":"), ensure_ascii=False)
    if isinstance(val, bool):
        return "true" if val else "false"
    return str(val)


def format_job(job: Dict[str, Any], fields: Sequence[str] = JOB_FIELDS) -> List[str]:
    """Return the sheet row for ``job`` in ``fields`` order."""
    return [format_value(f, job.get(f)) for f in fields]


def job_key(job: Dict[str, Any]) -> str:
    return str(job.get(KEY_FIELD) or "").strip()
