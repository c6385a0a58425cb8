"""
dashboard.py - Streamlit UI entrypoint and orchestration

This module wires the UI components (pettycash.ui.components) with the
business logic (pettycash.tracker) and persistence (pettycash.storage). The
main() function builds the sidebar and routes actions to tracker methods.

Design notes:
 - Keep the dashboard responsible only for UI orchestration and presentation.
 - All persistence and business rules live in the tracker and storage modules.
 - Components return lightweight data objects (TransactionInput) to keep wiring simple.
"""

import streamlit as st

from pettycash.errors import PettyCashError
from pettycash.ledger import grand_totals, monthly_summary
from pettycash.models import MonthKey
from pettycash.storage import open_tracker
from pettycash.tracker import PettyCashTracker
from pettycash.ui import components


def _show_storage_status(repository):
    backend_name, backend_msg = repository.status()
    if backend_name == "google_sheets":
        st.sidebar.success(backend_msg)
    else:
        st.sidebar.warning(backend_msg)
        st.sidebar.caption(
            "For indefinite cloud persistence, set GOOGLE_SHEET_ID and "
            "GOOGLE_SERVICE_ACCOUNT_JSON in Streamlit app Secrets."
        )


def ledger_view(tracker: PettyCashTracker, month: MonthKey):
    finalized = tracker.is_finalized(month)
    if finalized:
        st.info(
            f"The ledger for {month.label} has been exported. "
            "Re-open it from the history to make changes."
        )

    components.display_opening_balance_form(
        month,
        tracker.opening_balance(month),
        on_submit=lambda amount: components.run_action(
            lambda: tracker.set_opening_balance(month, amount),
            f"Opening balance for {month.label} saved.",
        ),
        disabled=finalized,
    )

    def on_add(t: components.TransactionInput):
        components.run_action(
            lambda: tracker.add_transaction(month, t.date, t.description, t.debit, t.credit),
            f'The transaction for "{t.description.strip()}" has been recorded.',
        )

    components.display_transaction_form(month, on_add, disabled=finalized)
    components.display_ledger(month, tracker.ledger(month))

    if not finalized:
        def on_edit(transaction_id: int, t: components.TransactionInput):
            components.run_action(
                lambda: tracker.edit_transaction(transaction_id, month, t.date, t.description, t.debit, t.credit),
                "The transaction has been successfully updated.",
            )

        def on_delete(transaction_id: int):
            components.run_action(
                lambda: tracker.delete_transaction(transaction_id),
                "The selected transaction has been removed.",
            )

        components.display_manage_transactions(month, tracker.list_transactions(month), on_edit, on_delete)

    st.markdown("---")
    if st.button("Export & Save Record"):
        def export():
            snapshot = tracker.export_ledger(month)
            st.session_state["last_export"] = snapshot.id

        components.run_action(
            export,
            f"The ledger for {month.label} has been exported and recorded in history.",
        )

    last_export = st.session_state.get("last_export")
    if last_export:
        for s in tracker.snapshots():
            if s.id == last_export and s.month_key == month:
                components.download_snapshot_button(s, key="download_last_export")


def history_view(tracker: PettyCashTracker):
    snapshots = tracker.snapshots()

    def on_reopen(snapshot_id: str):
        components.run_action(
            lambda: tracker.reopen_for_edit(snapshot_id),
            "The ledger has been re-opened. Its transactions are editable again.",
        )

    def on_delete(snapshot_id: str):
        components.run_action(
            lambda: tracker.delete_snapshot(snapshot_id),
            "The ledger record has been deleted.",
        )

    components.display_history(snapshots, on_reopen=on_reopen, on_delete=on_delete)
    if snapshots:
        components.display_grand_totals(*grand_totals(snapshots))
        rows, totals = monthly_summary(snapshots)
        components.display_monthly_summary(rows, totals)


def main():
    """
    Streamlit page: sidebar month picker and menu.
    Views:
      - Ledger: opening balance, add/edit/delete transactions, export & save
      - History: archived ledgers (download, re-open, delete), grand totals,
        monthly summary
    """
    st.title("Petty Cash")
    st.caption("Track and manage petty cash transactions.")
    try:
        tracker, repository = open_tracker()
    except PettyCashError as exc:
        st.error(f"Load Error: {exc}")
        st.stop()
    _show_storage_status(repository)

    month = components.select_month(tracker.available_months())
    choice = st.sidebar.selectbox("Select an option", ["Ledger", "History"])
    components.show_flash()

    if choice == "Ledger":
        ledger_view(tracker, month)
    elif choice == "History":
        history_view(tracker)


if __name__ == "__main__":
    main()
