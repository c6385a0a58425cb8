"""
components.py - reusable Streamlit components / forms / displays

This module contains pure-UI helpers used by the dashboard:
 - display_opening_balance_form / display_transaction_form
 - display_ledger (table, totals) / display_manage_transactions (edit/delete)
 - download_snapshot_button / display_history
 - display_grand_totals / display_monthly_summary

Forms hand a TransactionInput back to a callback; business rules (description
required, debit XOR credit, date inside the selected month, finalized months)
are enforced by the tracker, and its errors are shown with st.error.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import datetime

import altair as alt
import pandas as pd
import streamlit as st

from pettycash.errors import PettyCashError
from pettycash.export import XLSX_MIME, export_filename, ledger_frame, snapshot_frame, snapshot_to_xlsx
from pettycash.models import Ledger, LedgerSnapshot, MonthKey, Transaction

CURRENCY = "Rs."


def _trigger_rerun():
    # st.rerun replaced st.experimental_rerun in newer Streamlit releases
    if hasattr(st, "rerun"):
        st.rerun()
    elif hasattr(st, "experimental_rerun"):
        st.experimental_rerun()


def fmt(amount: float) -> str:
    return f"{amount:,.2f}"


@dataclass
class TransactionInput:
    """Lightweight container passed to the on_submit callback."""
    date: datetime.date
    description: str
    debit: float
    credit: float


def run_action(action: Callable[[], object], success: str) -> bool:
    """
    Run a tracker action and report the outcome. PettyCashError is shown as
    an error message (the tracker has already left the store unchanged).
    On success the message is kept for the next run and the page reruns so
    every view reflects the change.
    """
    try:
        action()
    except PettyCashError as exc:
        st.error(str(exc))
        return False
    st.session_state["flash"] = success
    _trigger_rerun()
    return True


def show_flash():
    message = st.session_state.pop("flash", None)
    if message:
        st.success(message)


def select_month(months: List[MonthKey], key: str = "ledger_month") -> MonthKey:
    """Sidebar month picker: known months plus the current month, newest first."""
    current = MonthKey.from_date(datetime.date.today())
    options = sorted(set(months) | {current}, reverse=True)
    return st.sidebar.selectbox(
        "Ledger month",
        options=options,
        index=options.index(current),
        format_func=lambda m: m.label,
        key=key,
    )


def _default_date(month: MonthKey) -> datetime.date:
    today = datetime.date.today()
    if month.contains(today):
        return today
    return datetime.date(month.year, month.month, 1)


def display_opening_balance_form(month: MonthKey, current: float, on_submit: Callable[[float], None], disabled: bool = False):
    st.subheader(f"Opening Balance for {month.label}")
    st.caption("Set the starting balance for the period. Left unset, it is carried forward from the previous month.")
    with st.form(key=f"opening_balance_{month}"):
        value = st.number_input(f"Balance ({CURRENCY})", value=float(current), format="%.2f", disabled=disabled)
        if st.form_submit_button("Save opening balance", disabled=disabled):
            on_submit(round(value, 2))


def display_transaction_form(month: MonthKey, on_submit: Callable[[TransactionInput], None], disabled: bool = False):
    """
    Display the 'Add New Transaction' form. Only one of debit/credit should
    be filled in; the tracker rejects entries that have both or neither.
    """
    st.subheader("Add New Transaction")
    with st.form(key=f"transaction_form_{month}", clear_on_submit=True):
        col1, col2 = st.columns([1, 2])
        with col1:
            date_val = st.date_input("Date", value=_default_date(month), disabled=disabled)
        with col2:
            description = st.text_input("Items/Expenditures", placeholder="e.g., Office Supplies", disabled=disabled)
        col3, col4 = st.columns(2)
        with col3:
            debit = st.number_input(f"Amount Debit ({CURRENCY})", min_value=0.0, format="%.2f",
                                    help="Expense amount", disabled=disabled)
        with col4:
            credit = st.number_input(f"Amount Credit ({CURRENCY})", min_value=0.0, format="%.2f",
                                     help="Received amount", disabled=disabled)
        if st.form_submit_button("Add Transaction", disabled=disabled):
            on_submit(TransactionInput(date=date_val, description=description, debit=debit, credit=credit))


def display_ledger(month: MonthKey, ledger: Ledger):
    st.subheader("Petty Cash Ledger")
    st.caption(f"A record of all transactions for {month.label}. Opening balance: {fmt(ledger.opening_balance)}")
    if not ledger.entries:
        st.info("No transactions recorded yet for this period.")
        return

    df = ledger_frame(ledger)
    st.dataframe(
        df.style.format({"Amount Debit": "{:,.2f}", "Amount Credit": "{:,.2f}", "Balance": "{:,.2f}"}, na_rep="-"),
        use_container_width=True,
        hide_index=True,
    )
    col1, col2, col3 = st.columns(3)
    col1.metric("Total Debit", fmt(ledger.total_debit))
    col2.metric("Total Credit", fmt(ledger.total_credit))
    col3.metric("Closing Balance", fmt(ledger.closing_balance))


def display_manage_transactions(
    month: MonthKey,
    transactions: List[Transaction],
    on_edit: Callable[[int, TransactionInput], None],
    on_delete: Callable[[int], None],
):
    """Select a transaction of the month and edit or delete it."""
    if not transactions:
        return
    with st.expander("Edit / Delete Transaction"):
        options = {f"#{t.id} {t.date.isoformat()} {t.description}": t for t in transactions}
        sel_label = st.selectbox("Select transaction", options=list(options.keys()), key=f"edit_select_{month}")
        t = options[sel_label]

        with st.form(key=f"edit_transaction_{t.id}"):
            date_val = st.date_input("Date", value=t.date)
            description = st.text_input("Items/Expenditures", value=t.description)
            debit = st.number_input(f"Amount Debit ({CURRENCY})", min_value=0.0, format="%.2f", value=float(t.debit))
            credit = st.number_input(f"Amount Credit ({CURRENCY})", min_value=0.0, format="%.2f", value=float(t.credit))
            if st.form_submit_button("Save changes"):
                on_edit(t.id, TransactionInput(date=date_val, description=description, debit=debit, credit=credit))

        # separate from the form to avoid accidental deletes
        delete_confirm = st.checkbox("I confirm I want to delete this transaction. This action cannot be undone.",
                                     key=f"delete_confirm_{t.id}")
        if st.button("Delete transaction", key=f"delete_{t.id}") and delete_confirm:
            on_delete(t.id)


def download_snapshot_button(snapshot: LedgerSnapshot, include_id: bool = False, key: Optional[str] = None):
    st.download_button(
        label="Download XLSX",
        data=snapshot_to_xlsx(snapshot),
        file_name=export_filename(snapshot, include_id=include_id),
        mime=XLSX_MIME,
        key=key,
    )


def display_history(
    snapshots: List[LedgerSnapshot],
    on_reopen: Callable[[str], None],
    on_delete: Callable[[str], None],
):
    """Archived ledgers, most recent month first."""
    st.header("Generated Ledger History")
    if not snapshots:
        st.info("No ledgers have been generated and saved yet.")
        return

    for s in snapshots:
        with st.expander(f"{s.month_key.label}  -  closing {fmt(s.closing_balance)}  ({s.id})"):
            st.write(
                f"Opening {fmt(s.opening_balance)} | Debit {fmt(s.total_debit)} | "
                f"Credit {fmt(s.total_credit)} | Closing {fmt(s.closing_balance)}"
            )
            if s.exported_at:
                st.caption(f"Exported at {s.exported_at}")
            st.dataframe(
                snapshot_frame(s).style.format(
                    {"Amount Debit": "{:,.2f}", "Amount Credit": "{:,.2f}", "Balance": "{:,.2f}"}, na_rep="-"
                ),
                use_container_width=True,
                hide_index=True,
            )
            col1, col2, col3 = st.columns(3)
            with col1:
                download_snapshot_button(s, include_id=True, key=f"download_{s.id}")
            with col2:
                if st.button("Re-open for edit", key=f"reopen_{s.id}"):
                    on_reopen(s.id)
            with col3:
                confirm = st.checkbox("Confirm delete", key=f"confirm_delete_{s.id}")
                if st.button("Delete record", key=f"delete_record_{s.id}") and confirm:
                    on_delete(s.id)


def display_grand_totals(total_debit: float, total_credit: float, net_total: float):
    st.subheader("Grand Totals")
    col1, col2, col3 = st.columns(3)
    col1.metric("Total Debit (All Records)", fmt(total_debit))
    col2.metric("Total Credit (All Records)", fmt(total_credit))
    col3.metric("Net Total (All Records)", fmt(net_total))


def display_monthly_summary(rows: List[Dict], totals: Dict[str, float]):
    """Per-month totals table with a footer row, and a debit/credit bar chart."""
    st.subheader("Monthly Summary")
    if not rows:
        st.write("No totals to display.")
        return

    df = pd.DataFrame(
        [
            {"Month": r["month"], "Total Debit": r["total_debit"], "Total Credit": r["total_credit"], "Net Total": r["net_total"]}
            for r in rows
        ]
        + [{"Month": "Total", "Total Debit": totals["total_debit"], "Total Credit": totals["total_credit"], "Net Total": totals["net_total"]}]
    )
    st.dataframe(
        df.style.format({"Total Debit": "{:,.2f}", "Total Credit": "{:,.2f}", "Net Total": "{:,.2f}"}),
        use_container_width=True,
        hide_index=True,
    )

    chart_rows = []
    for r in rows:
        month_start = datetime.date(r["month_key"].year, r["month_key"].month, 1)
        chart_rows.append({"month": month_start, "kind": "Debit", "amount": r["total_debit"]})
        chart_rows.append({"month": month_start, "kind": "Credit", "amount": r["total_credit"]})
    chart_df = pd.DataFrame(chart_rows)
    chart_df["month"] = pd.to_datetime(chart_df["month"])

    color_scale = alt.Scale(domain=["Debit", "Credit"], range=["#d62728", "#2ca02c"])
    chart = alt.Chart(chart_df).mark_bar().encode(
        x=alt.X("yearmonth(month):T", title="Month", axis=alt.Axis(format="%Y-%m", labelAngle=-45)),
        xOffset="kind:N",
        y=alt.Y("amount:Q", title=f"Amount ({CURRENCY})"),
        color=alt.Color("kind:N", scale=color_scale, legend=alt.Legend(title="")),
        tooltip=[
            alt.Tooltip("month:T", title="Month", format="%Y-%m"),
            alt.Tooltip("kind:N", title="Type"),
            alt.Tooltip("amount:Q", title="Amount", format=",.2f"),
        ],
    ).properties(width="container", height=300)
    st.altair_chart(chart, use_container_width=True)
