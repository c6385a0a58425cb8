"""
tracker.py - petty cash transaction store and ledger archive

Responsibilities:
 - keep the live transactions, opening balance overrides and archived ledgers
   (a LedgerStore) in memory
 - enforce the entry rules and the finalized-month lock
 - export a month to an archived snapshot, re-open it for edit, delete it
 - call the injected save callback after every successful change

Month lifecycle: live (editable) -> export -> finalized (snapshot exists)
-> reopen_for_edit -> live again, or finalized -> delete_snapshot -> live
transactions only, no archive entry.
"""

import datetime
import logging
import time
import uuid
from dataclasses import replace
from typing import Callable, List, Optional

from pettycash.errors import EmptyExportError, NotFoundError, ValidationError
from pettycash.ledger import (
    build_ledger,
    find_snapshot,
    resolve_opening_balance,
    sort_by_date,
    transactions_in_month,
    validate_transaction,
)
from pettycash.models import (
    Ledger,
    LedgerSnapshot,
    LedgerStore,
    MonthKey,
    Transaction,
    sort_snapshots,
    to_amount,
)

# ensure a logger is available
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


SaveCallback = Callable[[LedgerStore], None]


def new_snapshot_id() -> str:
    # millisecond stamp for readability, random suffix so quick re-exports differ
    return f"LGR-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class PettyCashTracker:
    """
    Operations over one LedgerStore. The UI creates a tracker (usually via
    storage.open_tracker()) and calls these methods from user actions.

    Every mutating method either completes and saves, or raises and leaves
    the store exactly as it was.
    """

    def __init__(self, store: Optional[LedgerStore] = None, save: Optional[SaveCallback] = None):
        self.store = store if store is not None else LedgerStore()
        self._save = save

    # -----------------------
    # Reads
    # -----------------------
    def list_transactions(self, month: Optional[MonthKey] = None) -> List[Transaction]:
        """Live transactions (optionally of one month) sorted by date."""
        if month is None:
            return sort_by_date(self.store.transactions)
        return sort_by_date(transactions_in_month(self.store.transactions, month))

    def get_transaction(self, transaction_id: int) -> Transaction:
        for t in self.store.transactions:
            if t.id == transaction_id:
                return t
        raise NotFoundError(f"Transaction #{transaction_id} no longer exists.")

    def opening_balance(self, month: MonthKey) -> float:
        return resolve_opening_balance(
            month,
            self.store.opening_balances,
            self.store.snapshots,
            self.store.transactions,
        )

    def ledger(self, month: MonthKey) -> Ledger:
        return build_ledger(self.opening_balance(month), transactions_in_month(self.store.transactions, month))

    def snapshots(self) -> List[LedgerSnapshot]:
        return list(self.store.snapshots)

    def get_snapshot(self, snapshot_id: str) -> LedgerSnapshot:
        for s in self.store.snapshots:
            if s.id == snapshot_id:
                return s
        raise NotFoundError(f"Ledger record {snapshot_id} no longer exists.")

    def is_finalized(self, month: MonthKey) -> bool:
        return find_snapshot(self.store.snapshots, month) is not None

    def available_months(self) -> List[MonthKey]:
        """Months that have live transactions, overrides or archived ledgers, oldest first."""
        months = {t.month_key for t in self.store.transactions}
        months.update(self.store.opening_balances)
        months.update(s.month_key for s in self.store.snapshots)
        return sorted(months)

    # -----------------------
    # Transactions
    # -----------------------
    def add_transaction(self, month: MonthKey, date, description: str, debit=0.0, credit=0.0) -> Transaction:
        """
        Validate and record a transaction in the ledger of `month`.
        The date must fall inside `month`.
        """
        d, description, debit, credit = validate_transaction(month, date, description, debit, credit)
        self._require_open(month)

        def apply(store: LedgerStore) -> Transaction:
            t = Transaction(id=store.next_id, date=d, description=description, debit=debit, credit=credit)
            store.next_id += 1
            store.transactions.append(t)
            return t

        t = self._commit(apply)
        logger.info("Added transaction id=%s (%s, debit=%.2f, credit=%.2f)", t.id, d.isoformat(), debit, credit)
        return t

    def edit_transaction(self, transaction_id: int, month: MonthKey, date, description: str, debit=0.0, credit=0.0) -> Transaction:
        """Replace the fields of an existing transaction. Same rules as add_transaction."""
        current = self.get_transaction(transaction_id)
        d, description, debit, credit = validate_transaction(month, date, description, debit, credit)
        self._require_open(current.month_key)
        self._require_open(month)

        def apply(store: LedgerStore) -> Transaction:
            for i, t in enumerate(store.transactions):
                if t.id == transaction_id:
                    updated = replace(t, date=d, description=description, debit=debit, credit=credit)
                    store.transactions[i] = updated
                    return updated
            raise NotFoundError(f"Transaction #{transaction_id} no longer exists.")

        t = self._commit(apply)
        logger.info("Updated transaction id=%s", transaction_id)
        return t

    def delete_transaction(self, transaction_id: int) -> Transaction:
        """Remove a live transaction. Ids are not reused."""
        current = self.get_transaction(transaction_id)
        self._require_open(current.month_key)

        def apply(store: LedgerStore) -> Transaction:
            store.transactions = [t for t in store.transactions if t.id != transaction_id]
            return current

        removed = self._commit(apply)
        logger.info("Deleted transaction id=%s. Remaining transactions=%d.", transaction_id, len(self.store.transactions))
        return removed

    def set_opening_balance(self, month: MonthKey, amount) -> float:
        """Create or overwrite the explicit opening balance of `month`."""
        amount = to_amount(amount)
        self._require_open(month)

        def apply(store: LedgerStore) -> float:
            store.opening_balances[month] = amount
            return amount

        self._commit(apply)
        logger.info("Opening balance for %s set to %.2f", month, amount)
        return amount

    # -----------------------
    # Ledger archive
    # -----------------------
    def export_ledger(self, month: MonthKey) -> LedgerSnapshot:
        """
        Finalize `month`: build its ledger and archive it, replacing any
        earlier snapshot of the same month. Live transactions stay in place.
        """
        month_transactions = transactions_in_month(self.store.transactions, month)
        if not month_transactions:
            raise EmptyExportError(f"Cannot export an empty ledger ({month.label} has no transactions).")

        ledger = self.ledger(month)
        snapshot = LedgerSnapshot(
            id=new_snapshot_id(),
            month_key=month,
            opening_balance=ledger.opening_balance,
            closing_balance=ledger.closing_balance,
            total_debit=ledger.total_debit,
            total_credit=ledger.total_credit,
            transactions=tuple(replace(e.transaction) for e in ledger.entries),
            exported_at=datetime.datetime.now().isoformat(timespec="seconds"),
        )

        def apply(store: LedgerStore) -> LedgerSnapshot:
            kept = [s for s in store.snapshots if s.month_key != month]
            store.snapshots = sort_snapshots([snapshot] + kept)
            return snapshot

        self._commit(apply)
        logger.info(
            "Exported ledger %s for %s (transactions=%d, closing=%.2f)",
            snapshot.id, month, len(snapshot.transactions), snapshot.closing_balance,
        )
        return snapshot

    def reopen_for_edit(self, snapshot_id: str) -> LedgerSnapshot:
        """
        Move an archived month back to live editing: drop the snapshot, put its
        transactions back as that month's live transactions (other months are
        untouched) and restore its opening balance as the month's override.
        """
        snapshot = self.get_snapshot(snapshot_id)
        month = snapshot.month_key

        def apply(store: LedgerStore) -> LedgerSnapshot:
            store.snapshots = [s for s in store.snapshots if s.id != snapshot_id]
            others = [t for t in store.transactions if not month.contains(t.date)]
            store.transactions = others + [replace(t) for t in snapshot.transactions]
            store.opening_balances[month] = snapshot.opening_balance
            # restored ids may exceed the counter if the file was edited by hand
            for t in snapshot.transactions:
                store.next_id = max(store.next_id, t.id + 1)
            return snapshot

        self._commit(apply)
        logger.info("Re-opened ledger %s for %s (transactions=%d)", snapshot_id, month, len(snapshot.transactions))
        return snapshot

    def delete_snapshot(self, snapshot_id: str) -> LedgerSnapshot:
        """Remove an archived ledger permanently. Transactions are not restored."""
        snapshot = self.get_snapshot(snapshot_id)

        def apply(store: LedgerStore) -> LedgerSnapshot:
            store.snapshots = [s for s in store.snapshots if s.id != snapshot_id]
            return snapshot

        self._commit(apply)
        logger.info("Deleted ledger record %s (%s)", snapshot_id, snapshot.month_key)
        return snapshot

    # -----------------------
    # Internals
    # -----------------------
    def _require_open(self, month: MonthKey):
        if self.is_finalized(month):
            raise ValidationError(
                f"The ledger for {month.label} has been exported. Re-open it for edit to make changes."
            )

    def _commit(self, apply):
        """
        Run `apply` on the store and persist. If saving fails the store is
        restored to its previous state and the error is re-raised.
        """
        backup = self.store.copy()
        try:
            result = apply(self.store)
            if self._save is not None:
                self._save(self.store)
        except Exception:
            logger.exception("Petty cash change failed; restoring previous state")
            self.store.restore(backup)
            raise
        return result
