import altair as alt
import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import Optional

from core.aggregation import ResultSnapshot
from core.charts import build_time_series_chart
from core.data import clear_dashboard_cache, format_amount, load_dashboard_data, progress_caption
from core.errors import DashboardError
from core.filters import normalize_filters
from core.ingestion import IngestionProgress
from core.selection import (
    ALL_SUPPLIERS,
    SERIES,
    filter_suppliers,
    pick_aggregates,
    selection_title,
    series_frame,
    sum_aggregates,
)
from core.settings import configure_logging

alt.data_transformers.disable_max_rows()
configure_logging()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(supplier: str, series_labels: list) -> str:
    supplier_chip = f"Supplier: {selection_title(supplier)}"
    series_chip = f"Series: {', '.join(series_labels)}" if series_labels else "Series: none"
    return "".join([f"<span class='chip'>{txt}</span>" for txt in [supplier_chip, series_chip]])


def render_page_header(title: str, filter_summary_html: str, export_df: Optional[pd.DataFrame] = None):
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>Home / Monthly trends</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Reload"):
            clear_dashboard_cache()
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name="monthly_totals.csv",
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def load_with_progress() -> Optional[dict]:
    status = st.empty()
    bar = st.progress(0, text="Loading & aggregating CSV…")

    def on_progress(progress: IngestionProgress):
        pct = progress.percent
        bar.progress(pct or 0, text="Loading & aggregating CSV…")
        status.caption(progress_caption(progress))

    try:
        data = load_dashboard_data(on_progress=on_progress)
    except DashboardError as exc:
        bar.empty()
        status.empty()
        st.error(f"Failed to load data ({exc.error_type}). {exc.user_message}")
        st.caption(str(exc))
        return None
    bar.empty()
    status.empty()
    return data


def render_totals_tiles(snapshot: ResultSnapshot, supplier: str):
    totals = sum_aggregates(pick_aggregates(snapshot, supplier))
    cols = st.columns(len(SERIES) + 1)
    for col, (series_id, label, _) in zip(cols, SERIES):
        col.metric(label, format_amount(getattr(totals, series_id)))
    cols[-1].metric("Rows processed", format_amount(snapshot.rows_read))


# ---------- UI setup ----------
st.set_page_config(page_title="Warehouse & Retail Sales Dashboard", layout="wide")
inject_base_styles()
st.title("Warehouse & Retail Sales Dashboard")
st.caption(
    "Segment by supplier (warehouse) and view monthly totals for Retail Sales, Retail Transfers, and Warehouse Sales."
)

data = load_with_progress()
if data is None:
    st.stop()
snapshot: ResultSnapshot = data["snapshot"]

# ----- Sidebar: filters -----
with st.sidebar:
    st.markdown("### Filters")
    supplier_query = st.text_input("Supplier search", "", placeholder="Type to filter suppliers…")
    supplier_options = [ALL_SUPPLIERS] + filter_suppliers(snapshot.suppliers, supplier_query)
    supplier_choice = st.selectbox(
        "Supplier (warehouse)",
        options=supplier_options,
        format_func=selection_title,
    )
    st.markdown("### Series")
    show_flags = {series_id: st.checkbox(label, value=True) for series_id, label, _ in SERIES}

filters = normalize_filters(
    {
        "supplier": supplier_choice,
        "supplier_query": supplier_query,
        **{f"show_{series_id}": flag for series_id, flag in show_flags.items()},
    },
    available_suppliers=snapshot.suppliers,
)
selected_labels = [label for series_id, label, _ in SERIES if series_id in filters.selected_series]
frame = series_frame(snapshot, filters.supplier)

render_page_header(selection_title(filters.supplier), format_filter_summary(filters.supplier, selected_labels), frame)
render_totals_tiles(snapshot, filters.supplier)

with card("Monthly totals"):
    if not snapshot.month_keys:
        st.info("No monthly data found in the CSV.")
    elif not filters.selected_series:
        st.info("Select at least one series to plot.")
    else:
        st.altair_chart(build_time_series_chart(frame, filters.selected_series), use_container_width=True)

with card("Monthly detail"):
    display_df = frame.copy()
    for series_id, label, _ in SERIES:
        display_df[series_id] = display_df[series_id].apply(format_amount)
    display_df = display_df.rename(columns={"month_key": "Month", **{s: label for s, label, _ in SERIES}})
    st.dataframe(display_df, use_container_width=True, hide_index=True)

st.caption(f"Source: {data['source']} · {format_amount(snapshot.rows_read)} rows aggregated across {len(snapshot.suppliers)} suppliers.")
