from __future__ import annotations

from typing import Dict, Sequence

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .config import (
    BUBBLE_SIZE_LIMITS,
    DEFAULT_SINCE,
    MAP_LAT_RANGE,
    MAP_LON_RANGE,
    MORTALITY_LAG,
    MORTALITY_RANGE,
    MOVING_WINDOW,
)


# ============================================================
# Configuration / constants
# ============================================================

OBSERVED_COLOR = "#1f77b4"
THRESHOLD_COLOR = "#d62728"

SERIES_COLORS: list[str] = [
    "#1f77b4",
    "#d62728",
    "#2ca02c",
    "#9467bd",
    "#ff7f0e",
    "#8c564b",
    "#e377c2",
    "#7f7f7f",
    "#bcbd22",
    "#17becf",
]

EXCEEDS_COLORS: Dict[bool, str] = {True: "#d62728", False: "#1f77b4"}

HOVER_TEMPLATE_WEEK = "Week ending: %{x|%d %b %Y}<br>%{y:,.0f}<extra>%{fullData.name}</extra>"

HOVER_TEMPLATE_STATE = (
    "<b>%{customdata[0]}</b><br>"
    "Observed: %{customdata[1]:,.0f}<br>"
    "Upper bound: %{customdata[2]:,.0f}<br>"
    "Excess (threshold spreads): %{customdata[3]:.2f}<extra></extra>"
)

BASE_LAYOUT = dict(
    width=1000,
    height=550,
    plot_bgcolor="#f5f7fb",
    margin=dict(t=80, l=60, r=60, b=50),
    legend=dict(
        orientation="h",
        x=0.5,
        y=1.02,
        xanchor="center",
        yanchor="bottom",
        bordercolor="#c7c7c7",
        borderwidth=1,
        bgcolor="#f9f9f9",
        font=dict(size=12),
    ),
)


# ============================================================
# Helper functions
# ============================================================


def _color(i: int) -> str:
    return SERIES_COLORS[i % len(SERIES_COLORS)]


def _finish(fig: go.Figure, title: str) -> go.Figure:
    fig.update_layout(title=dict(text=f"<b>{title}</b>", x=0.5), **BASE_LAYOUT)
    fig.update_xaxes(showgrid=True, gridcolor="#e6ecf5")
    fig.update_yaxes(showgrid=True, gridcolor="#e6ecf5")
    return fig


def _bubble_sizes(values: pd.Series, max_px: float = 40.0) -> np.ndarray:
    """Scale ``values`` into marker diameters, clipped to the size limits."""
    low, high = BUBBLE_SIZE_LIMITS
    clipped = values.astype(float).clip(lower=low, upper=high).to_numpy()
    span = high - low
    return 6.0 + (clipped - low) / span * (max_px - 6.0)


# ============================================================
# Time series
# ============================================================


def create_line_plot(
    df: pd.DataFrame,
    columns: Sequence[str] | None = None,
    *,
    title: str,
    y_axis_label: str,
    names: Dict[str, str] | None = None,
    colors: Dict[str, str] | None = None,
    y_range: tuple[float, float] | None = None,
) -> go.Figure:
    """
    Plot one or more columns of ``df`` against its index.

    Parameters
    ----------
    df : pd.DataFrame
        Frame indexed by date (or week of year).
    columns : sequence of str, optional
        Columns to draw; defaults to all of them.
    title, y_axis_label : str
        Figure title and Y-axis title.
    names : dict, optional
        Legend label per column.
    colors : dict, optional
        Line color per column.
    y_range : tuple, optional
        Fixed Y-axis range.

    Returns
    -------
    go.Figure
        Empty figure when ``df`` has no rows.
    """
    if df.empty:
        return go.Figure()

    names = names or {}
    colors = colors or {}
    fig = go.Figure()
    for i, col in enumerate(columns or list(df.columns)):
        fig.add_trace(
            go.Scatter(
                x=df.index,
                y=df[col],
                mode="lines",
                name=names.get(col, str(col)),
                line=dict(width=2, color=colors.get(col, _color(i))),
                hovertemplate=HOVER_TEMPLATE_WEEK,
            )
        )
    fig.update_yaxes(title_text=y_axis_label, tickformat=",")
    if y_range is not None:
        fig.update_yaxes(range=list(y_range))
    return _finish(fig, title)


def create_threshold_plot(series: pd.DataFrame, title: str) -> go.Figure:
    """Observed deaths (blue) against the upper bound threshold (red)."""
    return create_line_plot(
        series,
        ["ObservedNumber", "UpperBoundThreshold"],
        title=title,
        y_axis_label="Total number of recorded deaths per week",
        names={
            "ObservedNumber": "Observed",
            "UpperBoundThreshold": "Upper bound threshold",
        },
        colors={
            "ObservedNumber": OBSERVED_COLOR,
            "UpperBoundThreshold": THRESHOLD_COLOR,
        },
    )


def create_cumulative_excess_plot(
    df: pd.DataFrame, since: str = DEFAULT_SINCE
) -> go.Figure:
    """Lower and upper estimates of total excess deaths since ``since``."""
    start = pd.Timestamp(since)
    return create_line_plot(
        df,
        ["CumulativeLower", "CumulativeHigher"],
        title=f"Total Excess Deaths since {start.day} {start:%b %Y}",
        y_axis_label="excess deaths",
        names={
            "CumulativeLower": "Lower Bound Estimate",
            "CumulativeHigher": "Upper Bound Estimate",
        },
        colors={
            "CumulativeLower": OBSERVED_COLOR,
            "CumulativeHigher": THRESHOLD_COLOR,
        },
    )


def _add_dual_axis_traces(
    fig: go.Figure,
    df: pd.DataFrame,
    left: str,
    right: str,
    left_label: str,
    right_label: str,
    **position,
) -> None:
    """Add ``left`` on the primary and ``right`` on the secondary Y axis."""
    fig.add_trace(
        go.Scatter(x=df.index, y=df[left], name=left_label, line=dict(color=_color(0))),
        secondary_y=False,
        **position,
    )
    fig.add_trace(
        go.Scatter(x=df.index, y=df[right], name=right_label, line=dict(color=_color(1))),
        secondary_y=True,
        **position,
    )
    fig.update_yaxes(title_text=left_label, tickformat=",", secondary_y=False, **position)
    fig.update_yaxes(title_text=right_label, tickformat=",", secondary_y=True, **position)


def create_dual_axis_plot(
    df: pd.DataFrame,
    left: str,
    right: str,
    *,
    title: str,
    left_label: str,
    right_label: str,
) -> go.Figure:
    """Two series with different units sharing one time axis."""
    if df.empty:
        return go.Figure()

    fig = make_subplots(specs=[[{"secondary_y": True}]])
    _add_dual_axis_traces(fig, df, left, right, left_label, right_label)
    return _finish(fig, title)


def create_case_death_figure(
    df: pd.DataFrame,
    title: str,
    *,
    window: int = MOVING_WINDOW,
    lag: int = MORTALITY_LAG,
) -> go.Figure:
    """
    Two stacked panels for the daily case data.

    The top panel shows new cases and deaths (``window``-day moving sums) on
    separate Y axes; the bottom one the lagged mortality percentage.
    """
    if df.empty:
        return go.Figure()

    fig = make_subplots(
        rows=2,
        cols=1,
        shared_xaxes=True,
        vertical_spacing=0.12,
        specs=[[{"secondary_y": True}], [{}]],
        subplot_titles=(
            f"New Cases and Deaths By Day ({window}-day moving sum)",
            f"{lag} day lag mortality guess by day",
        ),
    )
    _add_dual_axis_traces(fig, df, "cases", "deaths", "cases", "deaths", row=1, col=1)
    fig.add_trace(
        go.Scatter(
            x=df.index,
            y=df["mortality_pct"],
            name="mortality",
            line=dict(color=_color(2)),
            showlegend=False,
        ),
        row=2,
        col=1,
    )
    fig.update_yaxes(title_text="percent", range=list(MORTALITY_RANGE), row=2, col=1)
    fig = _finish(fig, title)
    fig.update_layout(height=800)
    return fig


def create_mortality_comparison_plot(df: pd.DataFrame, state: str) -> go.Figure:
    """US lagged mortality against one state's."""
    return create_line_plot(
        df,
        title=f"Mortality of all US compared to {state}",
        y_axis_label="percent",
        y_range=MORTALITY_RANGE,
    )


# ============================================================
# Per-year and per-age breakdowns
# ============================================================


def create_yearly_plot(
    df: pd.DataFrame, *, cumulative: bool = False
) -> go.Figure:
    """
    One trace per calendar year against week of year.

    Weekly values are shown in thousands; cumulative values as totals.
    """
    if df.empty:
        return go.Figure()

    value_col = "CumulativeObserved" if cumulative else "ObservedNumber"
    scale = 1 if cumulative else 1000

    fig = go.Figure()
    for i, (year, sub) in enumerate(df.groupby("year", sort=True)):
        fig.add_trace(
            go.Scatter(
                x=sub["week"],
                y=sub[value_col] / scale,
                mode="lines",
                name=str(year),
                line=dict(width=2, color=_color(i)),
                hovertemplate="Week %{x}<br>%{y:,.1f}<extra>%{fullData.name}</extra>",
            )
        )
    fig.update_xaxes(title_text="week of year", dtick=4)
    if cumulative:
        fig.update_yaxes(title_text="deaths total", tickformat=",")
        title = "Cumulative sum of deaths by year"
    else:
        fig.update_yaxes(title_text="deaths in thousands")
        title = "Weekly deaths by year"
    return _finish(fig, title)


def create_age_plot(df: pd.DataFrame) -> go.Figure:
    """COVID-19 deaths per week, one trace per age group."""
    return create_line_plot(
        df,
        title="Covid deaths by age and week",
        y_axis_label="COVID-19 deaths",
    )


# ============================================================
# Map
# ============================================================


def create_bubble_map(snapshot: pd.DataFrame, title: str | None = None) -> go.Figure:
    """
    Geographic bubble chart of the states exceeding their threshold.

    Bubble size is ``BubbleSize`` (clipped to the configured size limits)
    and color is ``ExceedsThreshold``.  The view is limited to the
    continental US.
    """
    located = snapshot.dropna(subset=["Latitude", "Longitude"])
    if located.empty:
        return go.Figure()

    if title is None:
        week = pd.Timestamp(located["WeekEndingDate"].iloc[0])
        title = f"States exceeding their upper bound, week ending {week:%d %b %Y}"

    fig = go.Figure()
    for flag, sub in located.groupby("ExceedsThreshold", sort=True):
        fig.add_trace(
            go.Scattergeo(
                lat=sub["Latitude"],
                lon=sub["Longitude"],
                mode="markers",
                name="Exceeds threshold" if flag else "Within threshold",
                marker=dict(
                    size=_bubble_sizes(sub["BubbleSize"]),
                    color=EXCEEDS_COLORS[bool(flag)],
                    opacity=0.7,
                    line=dict(width=1, color="#333333"),
                ),
                customdata=sub[
                    ["State", "ObservedNumber", "UpperBoundThreshold", "BubbleSize"]
                ].to_numpy(),
                hovertemplate=HOVER_TEMPLATE_STATE,
            )
        )

    fig.update_geos(
        projection_type="mercator",
        lataxis_range=list(MAP_LAT_RANGE),
        lonaxis_range=list(MAP_LON_RANGE),
        showland=True,
        landcolor="#e5ecf6",
        showocean=True,
        oceancolor="#1b2a41",
        showsubunits=True,
        subunitcolor="#9aa5b1",
        showcountries=True,
    )
    fig = _finish(fig, title)
    fig.update_layout(height=650)
    return fig
