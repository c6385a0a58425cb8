"""
models.py - Data model definitions

This file defines the records shared by the ledger engine, the tracker and the UI:
  - MonthKey: a (year, month) ledger period
  - Transaction: a dated debit (expense) or credit (cash received)
  - LedgerEntry: a Transaction with the running balance after it (derived)
  - LedgerSnapshot: an exported, finalized month
  - LedgerStore: everything that gets persisted

Records are serialized to/from simple dicts so they can be persisted as JSON
in data/petty_cash_data.json (or rows in Google Sheets).
"""

import datetime
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Tuple, Any, Optional

from pettycash.errors import ValidationError


MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def to_amount(value: Any) -> float:
    """Coerce user/stored input to a 2-decimal amount. Empty input counts as 0."""
    if value is None or value == "":
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not math.isfinite(result):
        raise ValidationError(f"Invalid amount: {value!r}")
    return round(result, 2)


def to_date(value: Any) -> datetime.date:
    """Accept a date, a datetime or an ISO "YYYY-MM-DD" string."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}")


@dataclass(frozen=True, order=True)
class MonthKey:
    """A calendar month identifying one ledger period. Persisted as "YYYY-MM"."""
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"month out of range: {self.month}")

    @classmethod
    def from_date(cls, d: datetime.date) -> "MonthKey":
        return cls(d.year, d.month)

    @classmethod
    def parse(cls, text: str) -> "MonthKey":
        year, _, month = str(text).strip().partition("-")
        try:
            return cls(int(year), int(month))
        except ValueError:
            raise ValidationError(f"Invalid month: {text!r}")

    def previous(self) -> "MonthKey":
        if self.month == 1:
            return MonthKey(self.year - 1, 12)
        return MonthKey(self.year, self.month - 1)

    def contains(self, d: datetime.date) -> bool:
        return d.year == self.year and d.month == self.month

    @property
    def label(self) -> str:
        return f"{MONTH_NAMES[self.month - 1]} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass
class Transaction:
    """
    One petty cash movement.

    Fields:
      - id: integer unique id assigned by the tracker (never reused)
      - date: the day the cash moved
      - description: items/expenditures text (required)
      - debit: cash paid out (expense)
      - credit: cash received (replenishment)

    Exactly one of debit/credit is nonzero for a valid entry; the tracker
    checks that at entry time, here we only refuse impossible shapes.
    """
    id: int
    date: datetime.date
    description: str
    debit: float = 0.0
    credit: float = 0.0

    def __post_init__(self):
        self.date = to_date(self.date)
        self.debit = to_amount(self.debit)
        self.credit = to_amount(self.credit)
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Amounts cannot be negative.")
        if self.debit > 0 and self.credit > 0:
            raise ValidationError("A transaction can only be a debit or a credit, not both.")

    @property
    def month_key(self) -> MonthKey:
        return MonthKey.from_date(self.date)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "description": self.description,
            "debit": self.debit,
            "credit": self.credit,
        }

    @staticmethod
    def from_dict(d: Dict) -> "Transaction":
        """
        Construct a Transaction from a dict (inverse of to_dict).
        Missing amounts default to 0 so older files are tolerated.
        """
        return Transaction(
            id=int(d.get("id", 0) or 0),
            date=d["date"],
            description=d.get("description", "") or "",
            debit=d.get("debit", 0.0) or 0.0,
            credit=d.get("credit", 0.0) or 0.0,
        )


@dataclass(frozen=True)
class LedgerEntry:
    transaction: Transaction
    balance: float

    @property
    def id(self) -> int:
        return self.transaction.id

    @property
    def date(self) -> datetime.date:
        return self.transaction.date

    @property
    def description(self) -> str:
        return self.transaction.description

    @property
    def debit(self) -> float:
        return self.transaction.debit

    @property
    def credit(self) -> float:
        return self.transaction.credit


@dataclass(frozen=True)
class Ledger:
    """Result of building a month's ledger (see ledger.build_ledger)."""
    opening_balance: float
    entries: Tuple[LedgerEntry, ...]
    total_debit: float
    total_credit: float
    closing_balance: float


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    A finalized month's ledger, as exported.

    Transactions are stored by value: editing a live Transaction later never
    changes an archived snapshot.
    """
    id: str
    month_key: MonthKey
    opening_balance: float
    closing_balance: float
    total_debit: float
    total_credit: float
    transactions: Tuple[Transaction, ...]
    exported_at: str = ""  # ISO timestamp

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "month_key": str(self.month_key),
            "opening_balance": self.opening_balance,
            "closing_balance": self.closing_balance,
            "total_debit": self.total_debit,
            "total_credit": self.total_credit,
            "transactions": [t.to_dict() for t in self.transactions],
            "exported_at": self.exported_at,
        }

    @staticmethod
    def from_dict(d: Dict) -> "LedgerSnapshot":
        return LedgerSnapshot(
            id=str(d["id"]),
            month_key=MonthKey.parse(d["month_key"]),
            opening_balance=to_amount(d.get("opening_balance", 0.0)),
            closing_balance=to_amount(d.get("closing_balance", 0.0)),
            total_debit=to_amount(d.get("total_debit", 0.0)),
            total_credit=to_amount(d.get("total_credit", 0.0)),
            transactions=tuple(Transaction.from_dict(t) for t in d.get("transactions", []) or []),
            exported_at=d.get("exported_at", "") or "",
        )


def sort_snapshots(snapshots: List[LedgerSnapshot]) -> List[LedgerSnapshot]:
    """Most-recent month first; ties (should not happen) keep their order."""
    return sorted(snapshots, key=lambda s: s.month_key, reverse=True)


@dataclass
class LedgerStore:
    """
    The persisted petty cash state, passed explicitly to the tracker.

      - transactions: live (editable) transactions, all months
      - opening_balances: explicit opening balance overrides per month
      - next_id: next unused transaction id (monotonic)
      - snapshots: archived ledgers, most-recent-first, at most one per month
    """
    transactions: List[Transaction] = field(default_factory=list)
    opening_balances: Dict[MonthKey, float] = field(default_factory=dict)
    next_id: int = 1
    snapshots: List[LedgerSnapshot] = field(default_factory=list)

    def copy(self) -> "LedgerStore":
        # Transactions are mutable; snapshots are frozen and can be shared.
        return LedgerStore(
            transactions=[replace(t) for t in self.transactions],
            opening_balances=dict(self.opening_balances),
            next_id=self.next_id,
            snapshots=list(self.snapshots),
        )

    def restore(self, other: "LedgerStore"):
        """Overwrite this store in place with the contents of `other`."""
        self.transactions = other.transactions
        self.opening_balances = other.opening_balances
        self.next_id = other.next_id
        self.snapshots = other.snapshots

    def to_dict(self) -> Dict:
        return {
            "next_id": self.next_id,
            "transactions": [t.to_dict() for t in self.transactions],
            "opening_balances": {str(k): v for k, v in sorted(self.opening_balances.items())},
            "generated_ledgers": [s.to_dict() for s in self.snapshots],
        }

    @staticmethod
    def from_dict(d: Optional[Dict]) -> "LedgerStore":
        """
        Build a store from persisted data. next_id is kept stable but always
        exceeds the largest stored transaction id, so ids are never reused.
        """
        d = d or {}
        transactions = [Transaction.from_dict(t) for t in d.get("transactions", []) or []]
        snapshots = [LedgerSnapshot.from_dict(s) for s in d.get("generated_ledgers", []) or []]
        opening_balances = {
            MonthKey.parse(k): to_amount(v) for k, v in (d.get("opening_balances", {}) or {}).items()
        }

        max_id = 0
        for t in transactions:
            max_id = max(max_id, t.id)
        for s in snapshots:
            for t in s.transactions:
                max_id = max(max_id, t.id)
        try:
            next_id_raw = int(d.get("next_id", max_id + 1))
        except (TypeError, ValueError):
            next_id_raw = max_id + 1

        return LedgerStore(
            transactions=transactions,
            opening_balances=opening_balances,
            next_id=max(next_id_raw, max_id + 1),
            snapshots=sort_snapshots(snapshots),
        )
