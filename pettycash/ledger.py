"""
ledger.py - petty cash ledger computations

Pure functions used by the tracker and the UI:
  - validate_transaction: entry/edit rules for a ledger month
  - resolve_opening_balance: carry-forward of the previous month's balance
  - build_ledger: running balance and totals for one month
  - grand_totals / monthly_summary: aggregates over archived ledgers

Nothing here touches storage; callers pass the data in.
"""

import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pettycash.errors import ValidationError
from pettycash.models import (
    Ledger,
    LedgerEntry,
    LedgerSnapshot,
    MonthKey,
    Transaction,
    to_amount,
    to_date,
)


def validate_transaction(month: MonthKey, date, description: str, debit=0.0, credit=0.0) -> Tuple[datetime.date, str, float, float]:
    """
    Check a transaction entered for the ledger of `month`.

    Returns the normalised (date, description, debit, credit) or raises
    ValidationError with a message meant for the user.
    """
    description = (description or "").strip()
    debit = to_amount(debit)
    credit = to_amount(credit)

    if not description or (debit <= 0 and credit <= 0):
        raise ValidationError("Please provide a description and a valid debit or credit amount.")
    if debit > 0 and credit > 0:
        raise ValidationError("A transaction can only be a debit or a credit, not both.")
    # zero is allowed on the unused side only
    if debit < 0 or credit < 0:
        raise ValidationError("Amounts cannot be negative.")

    d = to_date(date)
    if not month.contains(d):
        raise ValidationError(
            f"The date {d.isoformat()} is not in {month.label}. "
            f"Select {MonthKey.from_date(d).label} to record this transaction."
        )
    return d, description, debit, credit


def transactions_in_month(transactions: Iterable[Transaction], month: MonthKey) -> List[Transaction]:
    return [t for t in transactions if month.contains(t.date)]


def sort_by_date(transactions: Iterable[Transaction]) -> List[Transaction]:
    # sorted() is stable: same-day entries keep insertion order
    return sorted(transactions, key=lambda t: t.date)


def resolve_opening_balance(
    month: MonthKey,
    overrides: Mapping[MonthKey, float],
    snapshots: Sequence[LedgerSnapshot],
    transactions: Iterable[Transaction],
) -> float:
    """
    Opening balance for `month`, first match wins:

      1. an explicit override for the month
      2. the closing balance of the previous month's snapshot
      3. the previous month's live transactions applied to that month's
         override (or 0)
      4. 0

    Step 3 only looks one month back. With two or more un-exported months in
    between, the earlier month's carry-forward is lost and 0 is used instead.
    """
    if month in overrides:
        return to_amount(overrides[month])

    previous = month.previous()
    snapshot = find_snapshot(snapshots, previous)
    if snapshot is not None:
        return snapshot.closing_balance

    previous_transactions = transactions_in_month(transactions, previous)
    if previous_transactions:
        balance = to_amount(overrides.get(previous, 0.0))
        for t in previous_transactions:
            balance = balance - t.debit + t.credit
        return round(balance, 2)

    return 0.0


def build_ledger(opening_balance: float, transactions: Iterable[Transaction]) -> Ledger:
    """
    Sort the month's transactions by date and attach the running balance
    (balance - debit + credit) to each one.
    """
    balance = to_amount(opening_balance)
    entries = []
    total_debit = 0.0
    total_credit = 0.0
    for t in sort_by_date(transactions):
        balance = round(balance - t.debit + t.credit, 2)
        total_debit += t.debit
        total_credit += t.credit
        entries.append(LedgerEntry(transaction=t, balance=balance))

    total_debit = round(total_debit, 2)
    total_credit = round(total_credit, 2)
    return Ledger(
        opening_balance=to_amount(opening_balance),
        entries=tuple(entries),
        total_debit=total_debit,
        total_credit=total_credit,
        closing_balance=round(to_amount(opening_balance) - total_debit + total_credit, 2),
    )


def grand_totals(snapshots: Iterable[LedgerSnapshot]) -> Tuple[float, float, float]:
    """(total debit, total credit, net total) across every archived ledger."""
    total_debit = 0.0
    total_credit = 0.0
    for s in snapshots:
        total_debit += s.total_debit
        total_credit += s.total_credit
    total_debit = round(total_debit, 2)
    total_credit = round(total_credit, 2)
    return total_debit, total_credit, round(total_credit - total_debit, 2)


def monthly_summary(snapshots: Iterable[LedgerSnapshot]) -> Tuple[List[Dict], Dict[str, float]]:
    """
    Aggregate archived ledgers per month.

    Returns:
        (rows, totals) where rows are most-recent-first dicts
        { month_key, month, total_debit, total_credit, net_total } and totals
        holds the same three sums over all rows.
    """
    by_month: Dict[MonthKey, Dict[str, float]] = {}
    for s in snapshots:
        m = by_month.setdefault(s.month_key, {"total_debit": 0.0, "total_credit": 0.0, "net_total": 0.0})
        m["total_debit"] += s.total_debit
        m["total_credit"] += s.total_credit
        m["net_total"] += s.total_credit - s.total_debit

    rows: List[Dict] = []
    totals = {"total_debit": 0.0, "total_credit": 0.0, "net_total": 0.0}
    for key in sorted(by_month, reverse=True):
        sums = {k: round(v, 2) for k, v in by_month[key].items()}
        rows.append({"month_key": key, "month": key.label, **sums})
        for k, v in sums.items():
            totals[k] += v
    return rows, {k: round(v, 2) for k, v in totals.items()}


def find_snapshot(snapshots: Sequence[LedgerSnapshot], month: MonthKey) -> Optional[LedgerSnapshot]:
    for s in snapshots:
        if s.month_key == month:
            return s
    return None
