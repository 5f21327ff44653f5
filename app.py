from pathlib import Path

import pandas as pd
from shiny import reactive
from shiny.express import input, ui
from shinywidgets import render_plotly

# Import organized modules
from us_mortality import pipeline, plotting
from us_mortality.config import (
    DEFAULT_CASE_STATE,
    DEFAULT_STATE,
    DEFAULT_WEEKS_AGO,
    DEFAULT_YEARS,
    GLOBAL_YEAR_MAX,
    GLOBAL_YEAR_MIN,
    STATE_CODES,
)
from us_mortality.data_manager import load_tables

# Helpers for UI mapping
STATE_CHOICES = {name: name for name in STATE_CODES}
CASE_STATE_CHOICES = {code: f"{name} ({code})" for name, code in STATE_CODES.items()}
DEFAULT_YEAR_RANGE = (min(DEFAULT_YEARS), max(DEFAULT_YEARS))
MAX_WEEKS_AGO = 104

# ======================================================
#  REACTIVE STATE
# ======================================================
# Load once on startup; values stay in-memory until app restart.
tables_store = reactive.Value(load_tables())


@reactive.calc
def excess():
    return tables_store.get()["excess"]


@reactive.calc
def selected_years():
    start, end = input.year_range()
    return list(range(int(start), int(end) + 1))


@reactive.calc
def case_views():
    cases = tables_store.get()["cases"]
    state = input.case_state()
    return {
        "us": pipeline.case_death_mortality(cases),
        "state": pipeline.case_death_mortality(cases, state),
        "comparison": pipeline.mortality_comparison(cases, state),
    }


# ======================================================
#  UI LAYOUT
# ======================================================
css_file = Path(__file__).parent / "css" / "theme.css"

ui.include_css(css_file)

ui.page_opts(
    title="US Excess Mortality",
    fillable=False,
    fillable_mobile=True,
    full_width=True,
    id="page",
    lang="en",
)

with ui.sidebar(open="always", position="right"):
    ui.input_select("state", "State of interest", STATE_CHOICES, selected=DEFAULT_STATE)
    ui.input_select(
        "case_state",
        "State for case data",
        CASE_STATE_CHOICES,
        selected=DEFAULT_CASE_STATE,
    )
    ui.input_slider(
        "weeks_ago",
        "Map: weeks before the latest data",
        min=0,
        max=MAX_WEEKS_AGO,
        value=DEFAULT_WEEKS_AGO,
        step=1,
    )
    ui.input_slider(
        "year_range",
        "Years for yearly charts",
        min=GLOBAL_YEAR_MIN,
        max=GLOBAL_YEAR_MAX,
        value=DEFAULT_YEAR_RANGE,
        step=1,
        sep="",
    )
    ui.input_action_button("reset_filters", "Reset filters", class_="btn-primary mt-3")


@reactive.effect
@reactive.event(input.reset_filters)
def _reset_filters():
    ui.update_select("state", selected=DEFAULT_STATE)
    ui.update_select("case_state", selected=DEFAULT_CASE_STATE)
    ui.update_slider("weeks_ago", value=DEFAULT_WEEKS_AGO)
    ui.update_slider("year_range", value=DEFAULT_YEAR_RANGE)


with ui.navset_tab(id="main_tabs"):
    with ui.nav_panel("Weekly deaths"):

        @render_plotly
        def state_plot():
            state = input.state()
            return plotting.create_threshold_plot(
                pipeline.state_series(excess(), state),
                f"Recorded Deaths per week: {state}",
            )

        @render_plotly
        def national_plot():
            return plotting.create_threshold_plot(
                pipeline.national_series(excess()),
                "Recorded Deaths per week: all states",
            )

        @render_plotly
        def exceeding_plot():
            return plotting.create_line_plot(
                pipeline.states_exceeding(excess()),
                title="States exceeding their upper bound threshold",
                y_axis_label="number of states",
                names={"StatesExceeding": "States exceeding"},
            )

    with ui.nav_panel("Map"):

        @render_plotly
        def map_plot():
            snapshot = pipeline.week_snapshot(
                excess(), tables_store.get()["locations"], int(input.weeks_ago())
            )
            return plotting.create_bubble_map(snapshot)

    with ui.nav_panel("Excess & yearly"):

        @render_plotly
        def cumulative_plot():
            return plotting.create_cumulative_excess_plot(
                pipeline.cumulative_excess(excess())
            )

        @render_plotly
        def weekly_by_year_plot():
            return plotting.create_yearly_plot(
                pipeline.deaths_by_year(excess(), selected_years())
            )

        @render_plotly
        def cumulative_by_year_plot():
            return plotting.create_yearly_plot(
                pipeline.deaths_by_year(excess(), selected_years()), cumulative=True
            )

    with ui.nav_panel("By age"):

        @render_plotly
        def age_plot():
            return plotting.create_age_plot(
                pipeline.age_series(tables_store.get()["age"])
            )

    with ui.nav_panel("Cases & mortality"):

        @render_plotly
        def us_cases_plot():
            return plotting.create_case_death_figure(
                case_views()["us"], "COVID-19 cases and deaths: US"
            )

        @render_plotly
        def state_cases_plot():
            return plotting.create_case_death_figure(
                case_views()["state"],
                f"COVID-19 cases and deaths: {input.case_state()}",
            )

        @render_plotly
        def comparison_plot():
            df: pd.DataFrame = case_views()["comparison"]
            return plotting.create_mortality_comparison_plot(df, input.case_state())
