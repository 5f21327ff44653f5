"""
US excess mortality: fetch the CDC weekly excess-death, deaths-by-age and
daily case datasets, aggregate them and write every chart as an HTML file.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import plotly.graph_objects as go

from . import data_manager, pipeline, plotting
from .cdc_fetch import load_locations
from .config import (
    DEFAULT_CASE_STATE,
    DEFAULT_SINCE,
    DEFAULT_STATE,
    DEFAULT_WEEKS_AGO,
    DEFAULT_YEARS,
    LOCATIONS_SOURCE,
)
from .errors import FetchError, SchemaError

logger = logging.getLogger(__name__)


def build_figures(payload: Dict[str, object]) -> Dict[str, go.Figure]:
    """Turn a pipeline payload into named figures."""
    state = payload["state"]
    case_state = payload["case_state"]
    return {
        "state_deaths": plotting.create_threshold_plot(
            payload["state_series"], f"Recorded Deaths per week: {state}"
        ),
        "us_deaths": plotting.create_threshold_plot(
            payload["national_series"], "Recorded Deaths per week: all states"
        ),
        "states_exceeding": plotting.create_line_plot(
            payload["states_exceeding"],
            title="States exceeding their upper bound threshold",
            y_axis_label="number of states",
            names={"StatesExceeding": "States exceeding"},
        ),
        "exceedance_map": plotting.create_bubble_map(payload["snapshot"]),
        "cumulative_excess": plotting.create_cumulative_excess_plot(
            payload["cumulative_excess"], payload["since"]
        ),
        "weekly_deaths_by_year": plotting.create_yearly_plot(payload["deaths_by_year"]),
        "cumulative_deaths_by_year": plotting.create_yearly_plot(
            payload["deaths_by_year"], cumulative=True
        ),
        "deaths_by_age": plotting.create_age_plot(payload["age_series"]),
        "us_cases": plotting.create_case_death_figure(
            payload["us_cases"], "COVID-19 cases and deaths: US"
        ),
        "state_cases": plotting.create_case_death_figure(
            payload["state_cases"], f"COVID-19 cases and deaths: {case_state}"
        ),
        "mortality_comparison": plotting.create_mortality_comparison_plot(
            payload["mortality_comparison"], case_state
        ),
    }


def write_figures(figures: Dict[str, go.Figure], output_dir: Path) -> List[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for name, fig in figures.items():
        if not fig.data:
            logger.warning("Skipping empty chart %s", name)
            continue
        path = output_dir / f"{name}.html"
        fig.write_html(path, include_plotlyjs="cdn")
        written.append(path)
    return written


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Explore US excess mortality and COVID-19 case/death data from the "
            "CDC and write the charts as HTML files."
        )
    )
    parser.add_argument(
        "--state",
        default=DEFAULT_STATE,
        help=f"State for the weekly threshold chart (default: {DEFAULT_STATE}).",
    )
    parser.add_argument(
        "--case-state",
        default=DEFAULT_CASE_STATE,
        help=f"State for the daily case charts (default: {DEFAULT_CASE_STATE}).",
    )
    parser.add_argument(
        "--weeks-ago",
        type=int,
        default=DEFAULT_WEEKS_AGO,
        help="Week shown on the map, counted back from the latest (default: 1).",
    )
    parser.add_argument(
        "--years",
        type=int,
        nargs="+",
        default=DEFAULT_YEARS,
        help="Calendar years for the per-year charts.",
    )
    parser.add_argument(
        "--since",
        default=DEFAULT_SINCE,
        help=f"Start date of the cumulative excess chart (default: {DEFAULT_SINCE}).",
    )
    parser.add_argument(
        "--locations",
        default=LOCATIONS_SOURCE,
        help="Path or URL to the state locations CSV (default: packaged copy).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("charts"),
        help="Directory for the HTML charts (default: ./charts).",
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Download the datasets even if cached copies exist.",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Neither read nor write the download cache.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    args = parser.parse_args(argv)
    if args.weeks_ago < 0:
        parser.error("--weeks-ago must be non-negative")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        datasets = data_manager.load_datasets(
            force_refresh=args.refresh, use_cache=not args.no_cache
        )
        payload = pipeline.run_pipeline(
            datasets,
            load_locations(args.locations),
            state=args.state,
            case_state=args.case_state,
            weeks_ago=args.weeks_ago,
            years=args.years,
            since=args.since,
        )
    except (FetchError, SchemaError) as exc:
        logger.error("%s", exc)
        return 1
    except ValueError as exc:
        logger.error("Invalid parameter: %s", exc)
        return 2

    written = write_figures(build_figures(payload), args.output_dir)
    logger.info("Wrote %d charts to %s", len(written), args.output_dir)
    for path in written:
        logger.info("  - %s", path.name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
