import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
from datetime import date
from uuid import uuid4

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from engine.budgets import BudgetEditor, plan_budget_writes, reconciliation_frame
from engine.config import get_settings
from engine.domain import EXPENSE, Budget, InvalidAmount, Transaction
from engine.events import BUDGET_ALERT, DATA_CHANGED, EventBus, budget_alert_handler
from engine.log import configure_logging
from engine.refresh import RefreshCoordinator
from engine.rollup import top_root_categories
from engine.seed import load_snapshot
from engine.services import MONTH_VIEW, YEAR_VIEW, Snapshot, recent_transactions

settings = get_settings()
configure_logging()
CUR = settings.currency_label

st.set_page_config(page_title="Finance Dashboard", layout="wide")

if "snapshot" not in st.session_state:
    st.session_state.snapshot = load_snapshot(settings.seed_path)
if "period" not in st.session_state:
    latest = max((t.date for t in st.session_state.snapshot.transactions), default=date.today())
    st.session_state.period = (latest.year, latest.month)


def money(v) -> str:
    return f"{CUR}{float(v):,.2f}"


async def current_snapshot() -> Snapshot:
    return st.session_state.snapshot


year, month = st.session_state.period
view = st.sidebar.radio("View", [MONTH_VIEW, YEAR_VIEW], format_func=str.title)

nav_prev, nav_label, nav_next = st.sidebar.columns([1, 3, 1])
if nav_prev.button("◀"):
    year, month = (year - 1, 12) if month == 1 else (year, month - 1)
    st.session_state.period = (year, month)
if nav_next.button("▶"):
    year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    st.session_state.period = (year, month)
nav_label.markdown(f"**{date(year, month, 1):%B %Y}**")

coordinator = RefreshCoordinator(current_snapshot, year, month, view)
bus = EventBus()
coordinator.attach(bus)
bus.subscribe(BUDGET_ALERT, budget_alert_handler)

report = asyncio.run(coordinator.refresh())
tree = report.tree
rollup = report.rollup

menu = st.sidebar.radio(
    "Menu", ["🏠 Overview", "🎯 Budgets", "➕ Add Transaction", "🧾 Transactions", "⚠️ Data Quality"]
)

if menu == "🏠 Overview":
    k1, k2, k3, k4 = st.columns(4)
    k1.metric("Income", money(rollup.income))
    k2.metric("Expenses", money(rollup.expense))
    k3.metric("Savings", money(rollup.savings))
    k4.metric("Balance", money(rollup.balance))

    left, right = st.columns(2)
    with left:
        pie = pd.DataFrame(
            top_root_categories(rollup, tree, EXPENSE, k=10, uncategorized_label=settings.uncategorized_label),
            columns=["Category", "Total"],
        )
        if pie.empty:
            st.info("No expenses in this period.")
        else:
            pie["Total"] = pie["Total"].astype(float)
            fig_pie = px.pie(pie, values="Total", names="Category", title="Expenses by Category")
            st.plotly_chart(fig_pie, use_container_width=True)

        roots = [r for r in tree.roots if r.id in report.drilldowns]
        if roots:
            chosen = st.selectbox("Drill down", roots, format_func=lambda n: n.category.name)
            slices = report.drilldowns[chosen.id]
            fig_sub = px.pie(
                names=[s.name for s in slices],
                values=[float(s.value) for s in slices],
                title=f"{chosen.category.name} breakdown",
            )
            st.plotly_chart(fig_sub, use_container_width=True)

    with right:
        keys = [b.key for b in report.buckets]
        fig_bar = go.Figure()
        fig_bar.add_trace(go.Bar(x=keys, y=[float(b.inc) for b in report.buckets], name="Income"))
        fig_bar.add_trace(go.Bar(x=keys, y=[float(b.exp) for b in report.buckets], name="Expense"))
        fig_bar.add_trace(go.Bar(x=keys, y=[float(b.sav) for b in report.buckets], name="Savings"))
        fig_bar.update_layout(barmode="group", title="Cash Flow", margin=dict(t=40, b=10, l=10, r=10))
        st.plotly_chart(fig_bar, use_container_width=True)

elif menu == "🎯 Budgets":
    st.title(f"🎯 Budgets · {date(year, month, 1):%B %Y}")
    frame = reconciliation_frame(report.budgets)
    if frame.empty:
        st.info("No budgets or spending this month.")
    else:
        st.dataframe(frame.drop(columns=["category_id"]), use_container_width=True)
        for row in report.budgets.values():
            for alert in bus.publish(BUDGET_ALERT, {"reconciliation": row}):
                if alert:
                    st.warning(alert["alert"])

    st.subheader("Edit budget values")
    snapshot = st.session_state.snapshot
    editor = BudgetEditor(snapshot.budgets, year, month)
    with st.form("budget_form"):
        inputs = {}
        for c in sorted(snapshot.categories, key=lambda c: c.name):
            inputs[c.id] = st.number_input(
                f"{c.name} ({c.type})", min_value=0.0, value=float(editor.value(c.id)), step=10.0, key=f"bud_{c.id}"
            )
        saved = st.form_submit_button("Save changes")

    if saved:
        for cid, value in inputs.items():
            editor.set(cid, value)
        writes = plan_budget_writes(editor.dirty(), snapshot.budgets, year, month)
        if not writes:
            st.info("Nothing changed.")
        else:
            budgets = list(snapshot.budgets)
            for w in writes:
                if w.op == "update":
                    budgets = [
                        Budget(b.id, b.category_id, b.year, b.month, w.amount) if b.id == w.budget_id else b
                        for b in budgets
                    ]
                else:
                    budgets.append(Budget(str(uuid4()), w.category_id, w.year, w.month, w.amount))
            editor.mark_saved()
            st.session_state.snapshot = Snapshot.of(snapshot.categories, snapshot.transactions, budgets)
            st.success(f"Saved {len(writes)} budget value(s).")
            st.rerun()

elif menu == "➕ Add Transaction":
    snapshot = st.session_state.snapshot
    with st.form("tx_form", clear_on_submit=True):
        tx_date = st.date_input("Date", value=date(year, month, 1))
        amount = st.text_input("Amount", value="0.00")
        category = st.selectbox("Category", snapshot.categories, format_func=lambda c: c.name)
        note = st.text_input("Note")
        submitted = st.form_submit_button("Add")

    if submitted:
        try:
            tx = Transaction(id=str(uuid4()), amount=amount, date=tx_date, category_id=category.id, note=note)
        except InvalidAmount as e:
            st.error(str(e))
        else:
            st.session_state.snapshot = Snapshot.of(
                snapshot.categories, snapshot.transactions + (tx,), snapshot.budgets
            )

            async def notify():
                bus.publish(DATA_CHANGED, {"transaction_id": tx.id})
                await coordinator.wait_idle()

            asyncio.run(notify())
            st.success(f"Added {money(tx.amount)} to {category.name}")
            st.rerun()

elif menu == "🧾 Transactions":
    st.title("🧾 Transactions")
    snapshot = st.session_state.snapshot
    rows = recent_transactions(snapshot, tree, limit=50, uncategorized_label=settings.uncategorized_label)
    if not rows:
        st.info("No transactions yet.")

    for row in rows:
        c_date, c_cat, c_note, c_amount, c_del = st.columns([2, 3, 4, 2, 1])
        c_date.write(f"{row.date:%d %b %Y}")
        c_cat.write(row.category)
        c_note.write(row.note)
        sign = "+" if row.type != EXPENSE else "-"
        c_amount.write(f"{sign}{money(row.amount)}")
        if c_del.button("🗑", key=f"del_{row.id}"):
            st.session_state.snapshot = snapshot.without_transaction(row.id)

            async def notify():
                bus.publish(DATA_CHANGED, {"transaction_id": row.id, "op": "delete"})
                await coordinator.wait_idle()

            asyncio.run(notify())
            st.rerun()

elif menu == "⚠️ Data Quality":
    if not report.anomalies:
        st.success("No structural problems found.")
    else:
        st.dataframe(
            pd.DataFrame([{"kind": a.kind, "detail": a.message} for a in report.anomalies]),
            use_container_width=True,
        )
