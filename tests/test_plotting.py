import pandas as pd
import plotly.graph_objects as go
import pytest

from us_mortality import pipeline, plotting


@pytest.fixture
def payload(raw_datasets, raw_locations):
    return pipeline.run_pipeline(
        raw_datasets, raw_locations, state="RI", weeks_ago=1, years=[2020]
    )


def test_threshold_plot_has_observed_and_threshold(payload):
    fig = plotting.create_threshold_plot(payload["state_series"], "Rhode Island")
    assert [trace.name for trace in fig.data] == ["Observed", "Upper bound threshold"]
    assert list(fig.data[0].y) == [100.0, 150.0, 90.0]
    assert fig.data[0].line.color == plotting.OBSERVED_COLOR
    assert fig.data[1].line.color == plotting.THRESHOLD_COLOR


def test_empty_frames_give_empty_figures():
    empty = pd.DataFrame(columns=["ObservedNumber", "UpperBoundThreshold"])
    assert not plotting.create_threshold_plot(empty, "x").data
    assert not plotting.create_yearly_plot(pd.DataFrame()).data
    assert not plotting.create_case_death_figure(pd.DataFrame(), "x").data
    assert not plotting.create_dual_axis_plot(
        pd.DataFrame(), "a", "b", title="t", left_label="a", right_label="b"
    ).data


def test_dual_axis_plot_uses_secondary_axis(payload):
    fig = plotting.create_dual_axis_plot(
        payload["us_cases"],
        "cases",
        "deaths",
        title="Cases and deaths",
        left_label="cases",
        right_label="deaths",
    )
    assert len(fig.data) == 2
    assert fig.data[1].yaxis == "y2"


def test_case_death_figure_layout(payload):
    fig = plotting.create_case_death_figure(payload["state_cases"], "CA")
    assert [trace.name for trace in fig.data] == ["cases", "deaths", "mortality"]
    # cases and deaths share the top panel on separate Y axes
    assert fig.data[0].yaxis == "y"
    assert fig.data[1].yaxis == "y2"
    assert fig.layout.yaxis2.title.text == "deaths"
    assert tuple(fig.layout.yaxis3.range) == (0, 10)


def test_yearly_plot_scales_weekly_deaths(payload):
    fig = plotting.create_yearly_plot(payload["deaths_by_year"])
    assert [trace.name for trace in fig.data] == ["2020"]
    assert list(fig.data[0].x) == [1, 2, 3]
    assert list(fig.data[0].y) == pytest.approx([0.6, 0.85, 0.74])

    cumulative = plotting.create_yearly_plot(payload["deaths_by_year"], cumulative=True)
    assert list(cumulative.data[0].y) == [600.0, 1450.0, 2190.0]


def test_age_plot_one_trace_per_group(payload):
    fig = plotting.create_age_plot(payload["age_series"])
    assert [trace.name for trace in fig.data] == [
        "Under 1 year",
        "25-34 years",
        "85 years and over",
    ]


def test_bubble_map(payload):
    fig = plotting.create_bubble_map(payload["snapshot"])
    assert len(fig.data) == 1
    trace = fig.data[0]
    assert isinstance(trace, go.Scattergeo)
    assert trace.name == "Exceeds threshold"
    # bigger excess, bigger bubble
    sizes = dict(zip(payload["snapshot"]["State"], trace.marker.size))
    assert sizes["California"] > sizes["Rhode Island"]
    assert tuple(fig.layout.geo.lataxis.range) == (20, 51)
    assert "11 Jan 2020" in fig.layout.title.text


def test_bubble_map_without_locations_is_empty(payload):
    snapshot = payload["snapshot"].assign(Latitude=float("nan"))
    assert not plotting.create_bubble_map(snapshot).data


def test_mortality_comparison_plot(payload):
    fig = plotting.create_mortality_comparison_plot(payload["mortality_comparison"], "CA")
    assert [trace.name for trace in fig.data] == ["US", "CA"]
    assert tuple(fig.layout.yaxis.range) == (0, 10)
    assert "CA" in fig.layout.title.text


def test_cumulative_excess_plot_matches_threshold_colors(tables):
    df = pipeline.cumulative_excess(tables["excess"], "2020-01-01")
    fig = plotting.create_cumulative_excess_plot(df, "2020-01-01")
    assert [trace.name for trace in fig.data] == [
        "Lower Bound Estimate",
        "Upper Bound Estimate",
    ]
    assert fig.data[0].line.color == plotting.OBSERVED_COLOR
    assert fig.data[1].line.color == plotting.THRESHOLD_COLOR
    assert "Total Excess Deaths since 1 Jan 2020" in fig.layout.title.text


def test_cumulative_excess_plot_default_title(tables):
    df = pipeline.cumulative_excess(tables["excess"], "2020-01-01")
    fig = plotting.create_cumulative_excess_plot(df)
    assert "since 1 Feb 2020" in fig.layout.title.text
