import datetime
from io import BytesIO

import pandas as pd

from pettycash.export import LEDGER_COLUMNS, export_filename, snapshot_frame, snapshot_to_xlsx
from pettycash.models import MonthKey
from pettycash.tracker import PettyCashTracker

MARCH = MonthKey(2025, 3)


def exported_snapshot():
    tracker = PettyCashTracker()
    tracker.set_opening_balance(MARCH, 1000)
    tracker.add_transaction(MARCH, datetime.date(2025, 3, 10), "Courier", debit=50)
    tracker.add_transaction(MARCH, datetime.date(2025, 3, 1), "Supplies", debit=200)
    tracker.add_transaction(MARCH, datetime.date(2025, 3, 5), "Replenish", credit=500)
    return tracker.export_ledger(MARCH)


def test_snapshot_frame():
    df = snapshot_frame(exported_snapshot())
    assert list(df.columns) == LEDGER_COLUMNS
    assert list(df["S.No"]) == [1, 2, 3]
    assert list(df["Items/Expenditures"]) == ["Supplies", "Replenish", "Courier"]
    assert list(df["Balance"]) == [800, 1300, 1250]
    assert df["Date"].iloc[0] == "01/03/2025"
    assert pd.isna(df["Amount Credit"].iloc[0])


def test_snapshot_to_xlsx():
    snapshot = exported_snapshot()
    content = snapshot_to_xlsx(snapshot)
    sheets = pd.read_excel(BytesIO(content), sheet_name=None)
    assert set(sheets) == {"ledger", "summary"}

    ledger = sheets["ledger"]
    assert len(ledger) == 4
    footer = ledger.iloc[-1]
    assert footer["Items/Expenditures"] == "Totals / Closing Balance"
    assert footer["Amount Debit"] == 250
    assert footer["Amount Credit"] == 500
    assert footer["Balance"] == 1250

    summary = dict(zip(sheets["summary"]["field"], sheets["summary"]["value"]))
    assert summary["Period"] == "March 2025"
    assert float(summary["Opening Balance"]) == 1000
    assert summary["Record"] == snapshot.id


def test_export_filename():
    snapshot = exported_snapshot()
    assert export_filename(snapshot) == "petty_cash_ledger_March_2025.xlsx"
    assert export_filename(snapshot, include_id=True) == f"petty_cash_ledger_March_2025_{snapshot.id}.xlsx"
