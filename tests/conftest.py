from __future__ import annotations

import re
from typing import Dict, List

import pytest

from workiz_sync import sheets_updater

_ROW_RE = re.compile(r"^[A-Z]+(\d+)")


def _split_range(rng: str):
    title, _, cells = rng.partition("!")
    if title.startswith("'") and title.endswith("'"):
        title = title[1:-1].replace("''", "'")
    return title, cells


class FakeRequest:
    def __init__(self, fn):
        self._fn = fn

    def execute(self, num_retries=0):
        return self._fn()


class FakeValues:
    def __init__(self, book: "FakeSheets"):
        self.book = book

    def get(self, spreadsheetId, range):
        def run():
            title, cells = _split_range(range)
            grid = self.book.tabs[title]
            if cells == "1:1":
                return {"values": [grid[0]]} if grid and grid[0] else {}
            data = grid[1:]
            return {"values": [list(r) for r in data]} if data else {}
        self.book.calls.append(("values.get", range))
        return FakeRequest(run)

    def update(self, spreadsheetId, range, valueInputOption, body):
        def run():
            title, cells = _split_range(range)
            row_no = int(_ROW_RE.match(cells).group(1))
            self.book.put_row(title, row_no, body["values"][0])
            return {}
        self.book.calls.append(("values.update", range))
        return FakeRequest(run)

    def batchUpdate(self, spreadsheetId, body):
        def run():
            for item in body["data"]:
                title, cells = _split_range(item["range"])
                row_no = int(_ROW_RE.match(cells).group(1))
                self.book.put_row(title, row_no, item["values"][0])
            return {}
        self.book.calls.append(("values.batchUpdate", [item["range"] for item in body["data"]]))
        return FakeRequest(run)

    def append(self, spreadsheetId, range, valueInputOption, insertDataOption, body):
        def run():
            title, _ = _split_range(range)
            self.book.tabs[title].extend(list(r) for r in body["values"])
            return {}
        self.book.calls.append(("values.append", range))
        return FakeRequest(run)


class FakeSpreadsheets:
    def __init__(self, book: "FakeSheets"):
        self.book = book

    def get(self, spreadsheetId, includeGridData=False):
        return FakeRequest(lambda: {
            "sheets": [{"properties": {"title": t}} for t in self.book.tabs]
        })

    def batchUpdate(self, spreadsheetId, body):
        def run():
            for req in body["requests"]:
                title = req["addSheet"]["properties"]["title"]
                self.book.tabs.setdefault(title, [])
            return {}
        self.book.calls.append(("batchUpdate", len(body["requests"])))
        return FakeRequest(run)

    def values(self):
        return FakeValues(self.book)


class FakeSheets:
    """In-memory stand-in for the Sheets v4 client (only the calls we make)."""

    def __init__(self, tabs: Dict[str, List[List[str]]] = None):
        self.tabs: Dict[str, List[List[str]]] = tabs or {}
        self.calls: List[tuple] = []

    def spreadsheets(self):
        return FakeSpreadsheets(self)

    def put_row(self, title, row_no, values):
        grid = self.tabs[title]
        while len(grid) < row_no:
            grid.append([])
        grid[row_no - 1] = list(values)

    def count(self, name):
        return sum(1 for c in self.calls if c[0] == name)


@pytest.fixture
def fake_sheets():
    return FakeSheets


@pytest.fixture(autouse=True)
def no_throttle(monkeypatch):
    monkeypatch.setattr(sheets_updater, "_RATE_LIMIT_SECONDS", 0.0)
