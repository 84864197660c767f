import pytest
import requests

from workiz_sync import workiz_client
from workiz_sync.workiz_client import WorkizError, fetch_jobs, redact_token

TOKEN = "api_abcdefghijklmnop"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, dict(params)))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


@pytest.fixture
def sleeps(monkeypatch):
    slept = []
    monkeypatch.setattr(workiz_client.time, "sleep", lambda s: slept.append(s))
    return slept


def _jobs(prefix, n, **extra):
    return [dict({"UUID": f"{prefix}{i}"}, **extra) for i in range(n)]


def test_single_short_page(sleeps):
    sess = FakeSession([FakeResponse(payload={"flag": True, "data": _jobs("J", 3)})])
    jobs = fetch_jobs(TOKEN, "2024-05-01", session=sess)

    assert [j["UUID"] for j in jobs] == ["J0", "J1", "J2"]
    url, params = sess.calls[0]
    assert url.endswith(f"/{TOKEN}/job/all/")
    assert params == {"start_date": "2024-05-01", "offset": 0, "records": 100, "only_open": "false"}


def test_paginates_until_short_page(sleeps):
    sess = FakeSession([
        FakeResponse(payload={"data": _jobs("A", 100)}),
        FakeResponse(payload={"data": _jobs("B", 100)}),
        FakeResponse(payload={"data": _jobs("C", 5)}),
    ])
    jobs = fetch_jobs(TOKEN, "2024-05-01", session=sess)
    assert len(jobs) == 205
    assert [c[1]["offset"] for c in sess.calls] == [0, 100, 200]


def test_has_more_false_stops(sleeps):
    sess = FakeSession([FakeResponse(payload={"data": _jobs("A", 100), "has_more": False})])
    assert len(fetch_jobs(TOKEN, "2024-05-01", session=sess)) == 100
    assert len(sess.calls) == 1


def test_repeated_page_stops(sleeps):
    page = {"data": _jobs("A", 100)}
    sess = FakeSession([FakeResponse(payload=page), FakeResponse(payload=page)])
    assert len(fetch_jobs(TOKEN, "2024-05-01", session=sess)) == 100
    assert len(sess.calls) == 2


def test_bare_list_and_error_payloads(sleeps):
    sess = FakeSession([FakeResponse(payload=_jobs("L", 2))])
    assert len(fetch_jobs(TOKEN, "2024-05-01", session=sess)) == 2

    sess = FakeSession([FakeResponse(payload={"error": True, "msg": "nope"})])
    assert fetch_jobs(TOKEN, "2024-05-01", session=sess) == []


def test_source_filter_is_case_insensitive(sleeps):
    data = [
        {"UUID": "1", "JobSource": "Google"},
        {"UUID": "2", "JobSource": " google "},
        {"UUID": "3", "JobSource": "Yelp"},
        {"UUID": "4"},
    ]
    sess = FakeSession([FakeResponse(payload={"data": data})])
    jobs = fetch_jobs(TOKEN, "2024-05-01", source="GOOGLE", session=sess)
    assert [j["UUID"] for j in jobs] == ["1", "2"]


def test_end_date_filter(sleeps):
    data = [
        {"UUID": "1", "CreatedDate": "2024-05-02 09:00:00"},
        {"UUID": "2", "CreatedDate": "2024-05-10 09:00:00"},
        {"UUID": "3", "JobDateTime": "2024-05-03T08:00:00"},
        {"UUID": "4"},
    ]
    sess = FakeSession([FakeResponse(payload={"data": data})])
    jobs = fetch_jobs(TOKEN, "2024-05-01", end_date="2024-05-05", session=sess)
    assert [j["UUID"] for j in jobs] == ["1", "3", "4"]


def test_retries_429_then_succeeds(sleeps):
    sess = FakeSession([
        FakeResponse(429, headers={"Retry-After": "2"}),
        FakeResponse(503),
        FakeResponse(payload={"data": _jobs("J", 1)}),
    ])
    jobs = fetch_jobs(TOKEN, "2024-05-01", session=sess)
    assert len(jobs) == 1
    assert sleeps[0] == 2.0
    assert len(sess.calls) == 3


def test_network_errors_retry_then_raise(sleeps):
    err = requests.ConnectionError("boom")
    sess = FakeSession([err] * workiz_client.MAX_RETRIES)
    with pytest.raises(WorkizError):
        fetch_jobs(TOKEN, "2024-05-01", session=sess)
    assert len(sess.calls) == workiz_client.MAX_RETRIES


def test_retry_budget_is_bounded(sleeps):
    sess = FakeSession([FakeResponse(429)] * workiz_client.MAX_RETRIES)
    with pytest.raises(WorkizError) as exc:
        fetch_jobs(TOKEN, "2024-05-01", session=sess)
    assert exc.value.status == 429
    assert len(sess.calls) == workiz_client.MAX_RETRIES


def test_client_error_is_not_retried(sleeps):
    sess = FakeSession([FakeResponse(401, payload={"msg": "bad token"}, text='{"msg": "bad token"}')])
    with pytest.raises(WorkizError) as exc:
        fetch_jobs(TOKEN, "2024-05-01", session=sess)
    assert exc.value.status == 401
    assert "bad token" in exc.value.body
    assert len(sess.calls) == 1


def test_missing_token():
    with pytest.raises(WorkizError):
        fetch_jobs("", "2024-05-01")


def test_redact_token():
    assert redact_token(TOKEN) == "api_…mnop"
    assert TOKEN not in redact_token(TOKEN)
    assert redact_token("short") == "***"
