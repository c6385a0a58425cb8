"""
export.py - printable/downloadable reports for archived ledgers

Turns a LedgerSnapshot into a pandas DataFrame (for display) and an XLSX
workbook (for download). The running balance is recomputed from the
snapshot's opening balance, so a historic download always matches what was
archived.
"""

from io import BytesIO
from typing import Optional

import pandas as pd

from pettycash.ledger import build_ledger
from pettycash.models import Ledger, LedgerSnapshot

LEDGER_COLUMNS = ["S.No", "Date", "Items/Expenditures", "Amount Debit", "Amount Credit", "Balance"]

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def ledger_frame(ledger: Ledger, date_format: str = "%d/%m/%Y") -> pd.DataFrame:
    """One row per entry; the unused side of a transaction is left empty."""
    rows = []
    for index, entry in enumerate(ledger.entries, start=1):
        rows.append({
            "S.No": index,
            "Date": entry.date.strftime(date_format),
            "Items/Expenditures": entry.description,
            "Amount Debit": entry.debit if entry.debit > 0 else None,
            "Amount Credit": entry.credit if entry.credit > 0 else None,
            "Balance": entry.balance,
        })
    return pd.DataFrame(rows, columns=LEDGER_COLUMNS)


def snapshot_frame(snapshot: LedgerSnapshot, date_format: str = "%d/%m/%Y") -> pd.DataFrame:
    return ledger_frame(build_ledger(snapshot.opening_balance, snapshot.transactions), date_format=date_format)


def snapshot_to_xlsx(snapshot: LedgerSnapshot, title: Optional[str] = None) -> bytes:
    """
    Workbook with two sheets:
      - ledger: the entries plus a "Totals / Closing Balance" footer row
      - summary: period, opening, totals and closing balance
    """
    df = snapshot_frame(snapshot)
    footer = pd.DataFrame(
        [{
            "S.No": None,
            "Date": None,
            "Items/Expenditures": "Totals / Closing Balance",
            "Amount Debit": snapshot.total_debit,
            "Amount Credit": snapshot.total_credit,
            "Balance": snapshot.closing_balance,
        }],
        columns=LEDGER_COLUMNS,
    )
    ledger_sheet = pd.concat([df, footer], ignore_index=True)

    summary = pd.DataFrame(
        [
            ("Title", title or f"Petty Cash Ledger - {snapshot.month_key.label}"),
            ("Period", snapshot.month_key.label),
            ("Opening Balance", snapshot.opening_balance),
            ("Total Debit", snapshot.total_debit),
            ("Total Credit", snapshot.total_credit),
            ("Closing Balance", snapshot.closing_balance),
            ("Record", snapshot.id),
            ("Exported at", snapshot.exported_at),
        ],
        columns=["field", "value"],
    )

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        ledger_sheet.to_excel(writer, index=False, sheet_name="ledger")
        summary.to_excel(writer, index=False, sheet_name="summary")
    # context manager already saved into buffer
    return buffer.getvalue()


def export_filename(snapshot: LedgerSnapshot, include_id: bool = False) -> str:
    """petty_cash_ledger_March_2025.xlsx (historic downloads also carry the record id)."""
    name = "petty_cash_ledger_" + snapshot.month_key.label.replace(" ", "_")
    if include_id:
        name += f"_{snapshot.id}"
    return name + ".xlsx"
