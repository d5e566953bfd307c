from __future__ import annotations

from typing import Any, Dict, Sequence

import altair as alt
import pandas as pd

from core.selection import SERIES_COLORS, SERIES_LABELS

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def build_time_series_chart(frame: pd.DataFrame, series_ids: Sequence[str], y_title: str = "Amount") -> alt.Chart:
    """Monthly line chart, one line per selected series, from a ``series_frame``."""
    ids = [s for s in series_ids if s in frame.columns]
    long = frame.melt(id_vars=["month_key"], value_vars=ids, var_name="series", value_name="value")
    long["series"] = long["series"].map(SERIES_LABELS)
    labels = [SERIES_LABELS[s] for s in ids]
    return (
        alt.Chart(long)
        .mark_line(point=True)
        .encode(
            x=alt.X("month_key:O", title="Month", sort=list(frame["month_key"])),
            y=alt.Y("value:Q", title=y_title, axis=alt.Axis(format="~s")),
            color=alt.Color(
                "series:N",
                title="Series",
                scale=alt.Scale(domain=labels, range=[SERIES_COLORS[s] for s in ids]),
            ),
            tooltip=["month_key", "series", alt.Tooltip("value:Q", format=",.0f")],
        )
    )
