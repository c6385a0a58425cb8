import datetime
import json
import os

import pytest

from pettycash.errors import LoadError
from pettycash.models import LedgerStore, MonthKey
from pettycash.storage import GoogleSheetsBackend, JsonFileBackend, StoreRepository, open_tracker

MARCH = MonthKey(2025, 3)


class FakeSheets:
    """Stands in for GoogleSheetsBackend in tests."""

    def __init__(self, available=False, save_ok=True, data=None):
        self.available = available
        self.reason = "GOOGLE_SHEET_ID is not set"
        self.save_ok = save_ok
        self.data = data or {}
        self.saved = []

    def save_state(self, data):
        self.saved.append(data)
        return self.save_ok

    def load_state(self):
        return self.data


def repository(tmp_path, **sheets_kwargs):
    return StoreRepository(
        json_backend=JsonFileBackend(str(tmp_path / "data" / "petty_cash.json")),
        sheets_backend=FakeSheets(**sheets_kwargs),
    )


def test_missing_file_gives_empty_store(tmp_path):
    tracker, _ = open_tracker(repository(tmp_path))
    assert tracker.list_transactions() == []
    assert tracker.store.next_id == 1


def test_state_survives_reload(tmp_path):
    repo = repository(tmp_path)
    tracker, _ = open_tracker(repo)
    tracker.set_opening_balance(MARCH, 1000)
    tracker.add_transaction(MARCH, datetime.date(2025, 3, 1), "Supplies", debit=200)
    tracker.add_transaction(MARCH, datetime.date(2025, 3, 5), "Replenish", credit=500)
    exported = tracker.export_ledger(MARCH)

    reloaded, _ = open_tracker(repo)
    assert reloaded.store.next_id == 3
    assert reloaded.opening_balance(MARCH) == 1000
    assert [t.description for t in reloaded.list_transactions(MARCH)] == ["Supplies", "Replenish"]
    assert reloaded.snapshots() == [exported]
    assert reloaded.is_finalized(MARCH)


def test_saved_file_layout(tmp_path):
    repo = repository(tmp_path)
    tracker, _ = open_tracker(repo)
    tracker.set_opening_balance(MARCH, 50)
    tracker.add_transaction(MARCH, datetime.date(2025, 3, 2), "Tea", debit=5)

    path = tmp_path / "data" / "petty_cash.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert set(data) == {"next_id", "transactions", "opening_balances", "generated_ledgers"}
    assert data["opening_balances"] == {"2025-03": 50}
    assert data["transactions"] == [
        {"id": 1, "date": "2025-03-02", "description": "Tea", "debit": 5.0, "credit": 0.0}
    ]
    # atomic write leaves no temp files behind
    assert os.listdir(tmp_path / "data") == ["petty_cash.json"]


def test_next_id_never_below_stored_ids():
    store = LedgerStore.from_dict({
        "next_id": 2,
        "transactions": [{"id": 7, "date": "2025-03-01", "description": "Tea", "debit": 5}],
    })
    assert store.next_id == 8


def test_sheets_preferred_when_available(tmp_path):
    data = {
        "next_id": 4,
        "transactions": [{"id": 3, "date": "2025-03-01", "description": "Float", "credit": 100}],
        "opening_balances": {},
        "generated_ledgers": [],
    }
    repo = repository(tmp_path, available=True, data=data)
    tracker, _ = open_tracker(repo)
    assert [t.id for t in tracker.list_transactions()] == [3]

    tracker.add_transaction(MARCH, datetime.date(2025, 3, 2), "Tea", debit=5)
    assert repo._sheets.saved[-1]["next_id"] == 5
    assert not (tmp_path / "data" / "petty_cash.json").exists()
    assert repo.status()[0] == "google_sheets"


def test_sheets_failure_falls_back_to_json(tmp_path):
    repo = repository(tmp_path, available=True, save_ok=False)
    tracker, _ = open_tracker(repo)
    tracker.add_transaction(MARCH, datetime.date(2025, 3, 2), "Tea", debit=5)
    assert (tmp_path / "data" / "petty_cash.json").exists()


def test_sheets_backend_disabled_without_sheet_id(monkeypatch):
    monkeypatch.delenv("GOOGLE_SHEET_ID", raising=False)
    backend = GoogleSheetsBackend()
    assert not backend.available
    assert backend.reason == "GOOGLE_SHEET_ID is not set"
    assert backend.load_state() == {}
    assert backend.save_state({}) is False


def test_data_file_from_environment(tmp_path, monkeypatch):
    target = tmp_path / "elsewhere.json"
    monkeypatch.setenv("PETTY_CASH_DATA_FILE", str(target))
    assert JsonFileBackend().path == str(target)


CORRUPT_FILES = [
    # debit and credit both set
    '{"transactions": [{"id": 1, "date": "2025-03-01", "description": "Both", "debit": 5, "credit": 5}]}',
    # no date
    '{"transactions": [{"id": 1, "description": "Undated", "debit": 5}]}',
    # NaN is accepted by json.load
    '{"transactions": [{"id": 1, "date": "2025-03-01", "description": "Tea", "debit": NaN}]}',
    # month key without a month
    '{"opening_balances": {"2025": 10}}',
    # truncated file
    '{"transactions": [',
]


@pytest.mark.parametrize("content", CORRUPT_FILES)
def test_corrupt_data_is_reported_as_load_error(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    repo = StoreRepository(json_backend=JsonFileBackend(str(path)), sheets_backend=FakeSheets())
    with pytest.raises(LoadError, match="Could not load saved petty cash data"):
        open_tracker(repo)
    # the file is left for the user to repair
    assert path.read_text(encoding="utf-8") == content


def test_corrupt_sheets_data_is_reported_as_load_error(tmp_path):
    data = {"transactions": [{"id": 1, "date": "not a date", "description": "Tea", "debit": 5}]}
    repo = repository(tmp_path, available=True, data=data)
    with pytest.raises(LoadError):
        repo.load()


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the backend's read/write calls."""

    def __init__(self):
        self.values = []
        self.row_count = 100
        self.col_count = 8

    def row_values(self, row):
        return self.values[row - 1] if len(self.values) >= row else []

    def get_all_values(self):
        return [list(r) for r in self.values]

    def update(self, range_name, values, value_input_option):
        assert range_name == "A1"
        self.values[: len(values)] = [list(r) for r in values]

    def clear(self):
        self.values = []

    def resize(self, rows, cols):
        self.row_count, self.col_count = rows, cols


def sheets_backend():
    backend = GoogleSheetsBackend.__new__(GoogleSheetsBackend)
    backend.available = True
    backend.reason = ""
    backend._worksheets = {title: FakeWorksheet() for title, _ in backend._layout()}
    backend._ensure_headers()
    return backend


def test_sheets_backend_round_trip(tmp_path):
    backend = sheets_backend()
    repo = StoreRepository(json_backend=JsonFileBackend(str(tmp_path / "unused.json")), sheets_backend=backend)
    tracker, _ = open_tracker(repo)
    tracker.set_opening_balance(MARCH, 1000)
    tracker.add_transaction(MARCH, datetime.date(2025, 3, 1), "Supplies", debit=200)
    tracker.add_transaction(MARCH, datetime.date(2025, 3, 5), "Replenish", credit=500)
    exported = tracker.export_ledger(MARCH)

    ledgers = backend._worksheets["ledgers"].get_all_values()
    assert ledgers[0] == GoogleSheetsBackend.LEDGER_HEADERS
    assert ledgers[1][1] == "2025-03"
    assert ledgers[1][3] == "1300.00"

    reloaded, _ = open_tracker(repo)
    assert reloaded.store.next_id == 3
    assert reloaded.opening_balance(MARCH) == 1000
    assert reloaded.snapshots() == [exported]
    assert not (tmp_path / "unused.json").exists()
