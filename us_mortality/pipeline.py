"""Core pipeline logic: normalize CDC mortality tables and build chart views.

This module orchestrates the cleaning and aggregation of three datasets:

* Weekly excess deaths by state, from which the threshold, national,
  exceedance, bubble-map, cumulative-excess and per-year views are built.
* Provisional COVID-19 deaths by sex, age and week, which feed the per-age
  breakdown.
* Daily COVID-19 cases and deaths by state, which feed the 7-day moving
  sums and the lagged mortality estimate.

The primary entry point is :func:`run_pipeline`, which returns every view
in a single payload.  :func:`prepare_tables` and :func:`build_views` are
exposed separately so that callers holding cached raw data (the dashboard,
``data_manager``) can skip the download.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .aggregate import (
    cumulative_sum,
    group_reduce,
    lag_ratio,
    moving_sum,
    normalized_excess,
)
from .cdc_fetch import fetch_all_datasets, load_locations
from .config import (
    AGE_COLUMNS,
    AGE_EXCLUSIONS,
    CASE_COLUMNS,
    DEFAULT_CASE_STATE,
    DEFAULT_SINCE,
    DEFAULT_STATE,
    DEFAULT_WEEKS_AGO,
    DEFAULT_YEARS,
    EXCEEDS_TRUE_TOKEN,
    EXCESS_COLUMNS,
    EXCESS_NUMERIC,
    EXCESS_OUTCOME,
    EXCESS_TYPE,
    LOCATION_COLUMNS,
    MORTALITY_LAG,
    MOVING_WINDOW,
    NATIONAL_LABEL,
    OUTCOME_VALUES,
    SEX_EXCLUSIONS,
    SEX_VALUES,
    STATE_CODES,
    TYPE_VALUES,
)
from .errors import EmptyGroupError, SchemaError

# Module‑level logger
logger = logging.getLogger(__name__)

Predicate = Callable[[pd.DataFrame], pd.Series]

SERIES_COLUMNS: List[str] = ["ObservedNumber", "UpperBoundThreshold"]
SNAPSHOT_COLUMNS: List[str] = [
    "State",
    "WeekEndingDate",
    "Latitude",
    "Longitude",
    "ObservedNumber",
    "AverageExpectedCount",
    "UpperBoundThreshold",
    "ExceedsThreshold",
    "BubbleSize",
]
YEARLY_COLUMNS: List[str] = [
    "year",
    "WeekEndingDate",
    "week",
    "ObservedNumber",
    "CumulativeObserved",
]
CASE_VIEW_COLUMNS: List[str] = ["cases", "deaths", "mortality_pct"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def ensure_columns(df: pd.DataFrame, required: Sequence[str]) -> None:
    """Raise an error if the DataFrame lacks any of the required columns."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise SchemaError(f"Missing expected columns: {missing}")


def _clean_label(value: object) -> object:
    if pd.isna(value):
        return np.nan
    return str(value).strip()


def coerce_categories(
    df: pd.DataFrame,
    columns: Sequence[str],
    categories: Optional[Mapping[str, Sequence[str]]] = None,
) -> pd.DataFrame:
    """Convert string columns to ``pandas.Categorical``.

    Parameters
    ----------
    df : pd.DataFrame
        Input data; not modified.
    columns : sequence of str
        Columns to convert.
    categories : mapping, optional
        Closed enumerations keyed by column name.  Values outside a given
        enumeration raise :class:`SchemaError`.  Columns without an entry
        use the sorted set of observed values.

    Returns
    -------
    pd.DataFrame
        A copy of ``df`` with the listed columns converted.
    """
    ensure_columns(df, columns)
    closed = categories or {}
    out = df.copy()
    for col in columns:
        values = out[col].map(_clean_label)
        observed = set(values.dropna().unique())
        allowed = closed.get(col)
        if allowed is None:
            allowed = sorted(observed)
        else:
            unknown = sorted(observed - set(allowed))
            if unknown:
                raise SchemaError(
                    f"Unexpected values in column {col!r}: {unknown}; "
                    f"expected one of {list(allowed)}"
                )
        out[col] = pd.Categorical(values, categories=list(allowed))
    return out


def coerce_boolean(
    df: pd.DataFrame, column: str, true_token: str = EXCEEDS_TRUE_TOKEN
) -> pd.DataFrame:
    """Map ``column`` to ``bool`` by exact match against ``true_token``.

    ``read_csv`` may already have parsed ``true``/``false`` into booleans;
    those are kept as they are.  Anything else, missing values included,
    becomes ``False``.
    """
    ensure_columns(df, [column])
    out = df.copy()

    def _is_true(value: object) -> bool:
        if isinstance(value, (bool, np.bool_)):
            return bool(value)
        return value == true_token

    out[column] = out[column].map(_is_true).astype(bool)
    return out


def coerce_numeric(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Coerce columns to float, tolerating thousands separators."""
    ensure_columns(df, columns)
    out = df.copy()
    for col in columns:
        raw = out[col]
        if pd.api.types.is_numeric_dtype(raw) and not pd.api.types.is_bool_dtype(raw):
            out[col] = raw.astype(float)
            continue
        text = raw.astype(str).str.replace(",", "", regex=False)
        converted = pd.to_numeric(text, errors="coerce").astype(float)
        if raw.notna().any() and converted.isna().all():
            raise SchemaError(f"Column {col!r} holds no numeric values")
        out[col] = converted
    return out


def coerce_dates(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Coerce columns to ``datetime64``; unparseable values become ``NaT``."""
    ensure_columns(df, columns)
    out = df.copy()
    for col in columns:
        raw = out[col]
        converted = pd.to_datetime(raw, errors="coerce")
        if raw.notna().any() and converted.isna().all():
            raise SchemaError(f"Column {col!r} holds no dates")
        out[col] = converted
    return out


def filter_rows(df: pd.DataFrame, predicate: Predicate) -> pd.DataFrame:
    """Return the rows of ``df`` for which ``predicate(df)`` is true.

    Missing mask values count as false.  The result is a new frame with a
    fresh index.
    """
    mask = pd.Series(predicate(df), index=df.index)
    mask = mask.fillna(False).astype(bool)
    return df.loc[mask].reset_index(drop=True)


def resolve_state(value: str, style: str = "name") -> str:
    """Translate a state given as a code or full name.

    Parameters
    ----------
    value : str
        Two-letter code (``"CA"``) or full name (``"California"``), any case.
    style : {"name", "code"}
        ``"name"`` for the weekly dataset, ``"code"`` for the daily one.
    """
    if style not in ("name", "code"):
        raise ValueError(f"style must be 'name' or 'code', got {style!r}")

    text = str(value).strip()
    names_by_code = {code: name for name, code in STATE_CODES.items()}
    names_by_lower = {name.lower(): name for name in STATE_CODES}

    if text.upper() in names_by_code:
        name = names_by_code[text.upper()]
    elif text.lower() in names_by_lower:
        name = names_by_lower[text.lower()]
    else:
        raise ValueError(f"Unknown state {value!r}")
    return STATE_CODES[name] if style == "code" else name


def derive_exceeds_threshold(df: pd.DataFrame) -> pd.DataFrame:
    """Recompute ``ExceedsThreshold`` as observed > upper bound threshold."""
    ensure_columns(df, ["ObservedNumber", "UpperBoundThreshold"])
    out = df.copy()
    exceeds = out["ObservedNumber"] > out["UpperBoundThreshold"]
    out["ExceedsThreshold"] = exceeds.fillna(False).astype(bool)
    return out


def week_of_year(dates: Sequence) -> np.ndarray:
    """Week number within the calendar year.

    Week 1 contains 1 January and weeks start on Sunday, so a year spans
    weeks 1-53 (54 in a leap year starting on Saturday).
    """
    index = pd.DatetimeIndex(dates)
    jan1 = pd.to_datetime(pd.DataFrame({"year": index.year, "month": 1, "day": 1}))
    # Sunday = 0
    offset = (jan1.dt.dayofweek.to_numpy() + 1) % 7
    return (np.asarray(index.dayofyear) - 1 + offset) // 7 + 1


def _age_order(label: str) -> tuple:
    text = label.lower()
    if text.startswith("under"):
        return (-1, label)
    digits = "".join(ch if ch.isdigit() else " " for ch in text).split()
    return (int(digits[0]), label) if digits else (10_000, label)


def _empty_result(
    what: str, columns: Sequence[str], index_name: Optional[str], strict: bool
) -> pd.DataFrame:
    if strict:
        raise EmptyGroupError(f"No rows for {what}")
    logger.warning("No rows for %s; returning an empty result", what)
    return pd.DataFrame(columns=list(columns), index=pd.Index([], name=index_name))


# ---------------------------------------------------------------------------
# Table preparation
# ---------------------------------------------------------------------------


def prepare_excess(
    raw: pd.DataFrame,
    *,
    type_: str = EXCESS_TYPE,
    outcome: str = EXCESS_OUTCOME,
    exclude_states: Sequence[str] = (NATIONAL_LABEL,),
) -> pd.DataFrame:
    """Clean the weekly excess deaths table.

    Coerces ``Type``, ``Outcome`` and ``State`` to categories and
    ``ExceedsThreshold`` to bool, then keeps only the requested
    Type/Outcome combination and drops aggregate pseudo-states such as
    ``"United States"``.

    Parameters
    ----------
    raw : pd.DataFrame
        The downloaded table with normalized headers.
    type_ : str, optional
        Weighting to keep; defaults to ``"Predicted (weighted)"``.
    outcome : str, optional
        Cause-of-death category to keep; defaults to ``"All causes"``.
    exclude_states : sequence of str, optional
        State labels to drop.

    Returns
    -------
    pd.DataFrame
        One row per (State, WeekEndingDate), sorted by week then state.
    """
    required = [c for c in EXCESS_COLUMNS if c != "ExceedsThreshold"]
    ensure_columns(raw, required)

    df = coerce_categories(
        raw,
        ["Type", "Outcome", "State"],
        {"Type": TYPE_VALUES, "Outcome": OUTCOME_VALUES},
    )
    df = coerce_dates(df, ["WeekEndingDate"])
    df = coerce_numeric(df, EXCESS_NUMERIC)
    if "ExceedsThreshold" in df.columns:
        df = coerce_boolean(df, "ExceedsThreshold", EXCEEDS_TRUE_TOKEN)
    else:
        df = derive_exceeds_threshold(df)

    excluded = list(exclude_states)
    kept = filter_rows(
        df,
        lambda d: (d["Type"] == type_)
        & (d["Outcome"] == outcome)
        & ~d["State"].isin(excluded),
    )
    logger.info(
        "Kept %d of %d weekly rows (%s, %s)", len(kept), len(raw), type_, outcome
    )
    return kept[EXCESS_COLUMNS].sort_values(
        ["WeekEndingDate", "State"], ignore_index=True
    )


def prepare_age_deaths(raw: pd.DataFrame) -> pd.DataFrame:
    """Clean the COVID-19 deaths by age/sex table.

    Aggregate rows (``"All Ages"`` and all-sexes totals) are dropped so that
    summing the remaining rows never double counts.
    """
    ensure_columns(raw, AGE_COLUMNS)
    df = coerce_categories(raw, ["Sex", "AgeGroup"], {"Sex": SEX_VALUES})
    df["AgeGroup"] = df["AgeGroup"].cat.reorder_categories(
        sorted(df["AgeGroup"].cat.categories, key=_age_order)
    )
    df = coerce_dates(df, ["EndWeek"])
    df = coerce_numeric(df, ["COVID_19Deaths"])

    kept = filter_rows(
        df,
        lambda d: ~d["AgeGroup"].isin(AGE_EXCLUSIONS) & ~d["Sex"].isin(SEX_EXCLUSIONS),
    )
    logger.info("Kept %d of %d age/sex rows", len(kept), len(raw))
    return kept[AGE_COLUMNS].sort_values(["EndWeek", "AgeGroup"], ignore_index=True)


def prepare_cases(raw: pd.DataFrame) -> pd.DataFrame:
    """Coerce the daily cases/deaths table; ``state`` holds two-letter codes."""
    ensure_columns(raw, CASE_COLUMNS)
    df = coerce_categories(raw, ["state"])
    df = coerce_dates(df, ["submission_date"])
    df = coerce_numeric(df, ["new_case", "new_death"])
    return df[CASE_COLUMNS].sort_values(
        ["submission_date", "state"], ignore_index=True
    )


def prepare_locations(raw: pd.DataFrame) -> pd.DataFrame:
    ensure_columns(raw, LOCATION_COLUMNS)
    df = coerce_categories(raw, ["State"])
    df = coerce_numeric(df, ["Latitude", "Longitude"])
    return df[LOCATION_COLUMNS].drop_duplicates(subset=["State"], ignore_index=True)


def prepare_tables(
    datasets: Mapping[str, pd.DataFrame], locations: pd.DataFrame
) -> Dict[str, pd.DataFrame]:
    """Prepare every raw table; keys ``excess``, ``age``, ``cases``, ``locations``."""
    missing = [key for key in ("excess", "age", "cases") if key not in datasets]
    if missing:
        raise SchemaError(f"Missing datasets: {missing}")
    return {
        "excess": prepare_excess(datasets["excess"]),
        "age": prepare_age_deaths(datasets["age"]),
        "cases": prepare_cases(datasets["cases"]),
        "locations": prepare_locations(locations),
    }


# ---------------------------------------------------------------------------
# Weekly excess views
# ---------------------------------------------------------------------------


def state_series(
    excess: pd.DataFrame, state: str = DEFAULT_STATE, *, strict: bool = False
) -> pd.DataFrame:
    """Observed deaths and upper bound threshold per week for one state."""
    name = resolve_state(state, "name")
    subset = filter_rows(excess, lambda d: d["State"] == name)
    if subset.empty:
        return _empty_result(f"state {name!r}", SERIES_COLUMNS, "WeekEndingDate", strict)
    return group_reduce(subset, "WeekEndingDate", SERIES_COLUMNS)


def national_series(excess: pd.DataFrame, *, strict: bool = False) -> pd.DataFrame:
    """Observed deaths and upper bound threshold summed over all states."""
    if excess.empty:
        return _empty_result("the US", SERIES_COLUMNS, "WeekEndingDate", strict)
    return group_reduce(excess, "WeekEndingDate", SERIES_COLUMNS)


def states_exceeding(excess: pd.DataFrame, *, strict: bool = False) -> pd.DataFrame:
    """Number of states above their upper bound threshold, per week."""
    if excess.empty:
        return _empty_result(
            "threshold exceedance", ["StatesExceeding"], "WeekEndingDate", strict
        )
    counts = group_reduce(excess, "WeekEndingDate", ["ExceedsThreshold"])
    return counts.rename(columns={"ExceedsThreshold": "StatesExceeding"}).astype(int)


def weeks_exceeding(excess: pd.DataFrame, *, strict: bool = False) -> pd.DataFrame:
    """Number of weeks each state spent above its upper bound threshold."""
    if excess.empty:
        return _empty_result(
            "threshold exceedance", ["WeeksExceeding"], "State", strict
        )
    counts = group_reduce(excess, "State", ["ExceedsThreshold"])
    return counts.rename(columns={"ExceedsThreshold": "WeeksExceeding"}).astype(int)


def week_snapshot(
    excess: pd.DataFrame,
    locations: pd.DataFrame,
    weeks_ago: int = DEFAULT_WEEKS_AGO,
    *,
    strict: bool = False,
) -> pd.DataFrame:
    """States exceeding their threshold in one week, with map coordinates.

    Parameters
    ----------
    excess : pd.DataFrame
        Output of :func:`prepare_excess`.
    locations : pd.DataFrame
        Output of :func:`prepare_locations`.
    weeks_ago : int
        0 selects the most recent week, 1 the week before, and so on.

    Returns
    -------
    pd.DataFrame
        One row per exceeding state with ``Latitude``/``Longitude`` (NaN
        when the state has no location) and ``BubbleSize``, the excess in
        units of (threshold - expected).
    """
    if weeks_ago < 0:
        raise ValueError(f"weeks_ago must be non-negative, got {weeks_ago}")

    weeks = pd.DatetimeIndex(excess["WeekEndingDate"].dropna().unique()).sort_values()
    if weeks_ago >= len(weeks):
        return _empty_result(
            f"{weeks_ago} weeks ago ({len(weeks)} weeks available)",
            SNAPSHOT_COLUMNS,
            None,
            strict,
        ).reset_index(drop=True)

    week = weeks[-1 - weeks_ago]
    snapshot = filter_rows(excess, lambda d: d["WeekEndingDate"] == week)
    snapshot = snapshot.astype({"State": str}).merge(
        locations.astype({"State": str}), on="State", how="left"
    )
    snapshot["BubbleSize"] = normalized_excess(
        snapshot["ObservedNumber"],
        snapshot["UpperBoundThreshold"],
        snapshot["AverageExpectedCount"],
    ).to_numpy()

    missing = snapshot.loc[snapshot["Latitude"].isna(), "State"].tolist()
    if missing:
        logger.warning("No map location for %s", ", ".join(missing))

    exceeding = filter_rows(snapshot, lambda d: d["ExceedsThreshold"])
    logger.info(
        "%d of %d states exceed their threshold in the week ending %s",
        len(exceeding),
        len(snapshot),
        week.date(),
    )
    return exceeding[SNAPSHOT_COLUMNS]


def cumulative_excess(
    excess: pd.DataFrame, since: str = DEFAULT_SINCE, *, strict: bool = False
) -> pd.DataFrame:
    """Running totals of the lower and higher excess estimates after ``since``."""
    start = pd.Timestamp(since)
    recent = filter_rows(excess, lambda d: d["WeekEndingDate"] > start)
    columns = ["CumulativeLower", "CumulativeHigher"]
    if recent.empty:
        return _empty_result(f"weeks after {start.date()}", columns, "WeekEndingDate", strict)

    weekly = group_reduce(
        recent, "WeekEndingDate", ["ExcessLowerEstimate", "ExcessHigherEstimate"]
    )
    return pd.DataFrame(
        {
            "CumulativeLower": cumulative_sum(weekly["ExcessLowerEstimate"]).to_numpy(),
            "CumulativeHigher": cumulative_sum(weekly["ExcessHigherEstimate"]).to_numpy(),
        },
        index=weekly.index,
    )


def deaths_by_year(
    excess: pd.DataFrame,
    years: Sequence[int] = DEFAULT_YEARS,
    *,
    strict: bool = False,
) -> pd.DataFrame:
    """Weekly deaths per calendar year, keyed by week of year.

    Returns a long frame with one row per (year, week): the national
    ``ObservedNumber`` for that week and its running total within the year.
    Weeks with missing counts are dropped before summing.
    """
    frames: List[pd.DataFrame] = []
    for year in years:
        start = pd.Timestamp(year=year, month=1, day=1)
        end = pd.Timestamp(year=year + 1, month=1, day=1)
        rows = filter_rows(
            excess,
            lambda d: (d["WeekEndingDate"] >= start)
            & (d["WeekEndingDate"] < end)
            & d["ObservedNumber"].notna(),
        )
        if rows.empty:
            logger.warning("No weekly deaths recorded in %d", year)
            continue

        weekly = group_reduce(rows, "WeekEndingDate", ["ObservedNumber"])
        frames.append(
            pd.DataFrame(
                {
                    "year": year,
                    "WeekEndingDate": weekly.index,
                    "week": week_of_year(weekly.index),
                    "ObservedNumber": weekly["ObservedNumber"].to_numpy(),
                    "CumulativeObserved": cumulative_sum(
                        weekly["ObservedNumber"]
                    ).to_numpy(),
                }
            )
        )

    if not frames:
        return _empty_result(
            f"years {list(years)}", YEARLY_COLUMNS, None, strict
        ).reset_index(drop=True)
    return pd.concat(frames, ignore_index=True)


# ---------------------------------------------------------------------------
# Age and case views
# ---------------------------------------------------------------------------


def age_series(age_deaths: pd.DataFrame, *, strict: bool = False) -> pd.DataFrame:
    """COVID-19 deaths per week (rows) and age group (columns).

    Sex categories are summed, so each cell is the total for that age group
    and week.
    """
    if age_deaths.empty:
        return _empty_result("age groups", [], "EndWeek", strict)
    return age_deaths.pivot_table(
        index="EndWeek",
        columns="AgeGroup",
        values="COVID_19Deaths",
        aggfunc="sum",
        observed=True,
    )


def case_death_mortality(
    cases: pd.DataFrame,
    state: Optional[str] = None,
    *,
    window: int = MOVING_WINDOW,
    lag: int = MORTALITY_LAG,
    strict: bool = False,
) -> pd.DataFrame:
    """Moving sums of new cases/deaths and a lagged mortality percentage.

    Parameters
    ----------
    cases : pd.DataFrame
        Output of :func:`prepare_cases`.
    state : str, optional
        Code or full name; ``None`` aggregates every jurisdiction.
    window : int
        Length of the trailing moving sum, in days.
    lag : int
        Days between a case and the deaths it is compared against.

    Returns
    -------
    pd.DataFrame
        Indexed by ``submission_date`` with columns ``cases`` and ``deaths``
        (moving sums) and ``mortality_pct``: deaths over cases ``lag`` days
        earlier, in percent.
    """
    label = "the US"
    if state is not None:
        code = resolve_state(state, "code")
        cases = filter_rows(cases, lambda d: d["state"] == code)
        label = code
    if cases.empty:
        return _empty_result(label, CASE_VIEW_COLUMNS, "submission_date", strict)

    daily = group_reduce(cases, "submission_date", ["new_case", "new_death"])
    case_sum = moving_sum(daily["new_case"], window)
    death_sum = moving_sum(daily["new_death"], window)
    return pd.DataFrame(
        {
            "cases": case_sum.to_numpy(),
            "deaths": death_sum.to_numpy(),
            "mortality_pct": lag_ratio(death_sum, case_sum, lag).to_numpy(),
        },
        index=daily.index,
    )


def mortality_comparison(
    cases: pd.DataFrame,
    state: str = DEFAULT_CASE_STATE,
    *,
    window: int = MOVING_WINDOW,
    lag: int = MORTALITY_LAG,
) -> pd.DataFrame:
    """US and single-state lagged mortality aligned on one date axis."""
    code = resolve_state(state, "code")
    national = case_death_mortality(cases, None, window=window, lag=lag)
    local = case_death_mortality(cases, code, window=window, lag=lag)
    combined = pd.concat(
        {"US": national["mortality_pct"], code: local["mortality_pct"]}, axis=1
    )
    combined.index.name = "submission_date"
    return combined.astype(float)


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def build_views(
    tables: Mapping[str, pd.DataFrame],
    *,
    state: str = DEFAULT_STATE,
    case_state: str = DEFAULT_CASE_STATE,
    weeks_ago: int = DEFAULT_WEEKS_AGO,
    years: Sequence[int] = DEFAULT_YEARS,
    since: str = DEFAULT_SINCE,
) -> Dict[str, object]:
    """Compute every chart view from prepared tables."""
    excess = tables["excess"]
    cases = tables["cases"]
    case_code = resolve_state(case_state, "code")
    return {
        "state": resolve_state(state, "name"),
        "case_state": case_code,
        "since": since,
        "state_series": state_series(excess, state),
        "national_series": national_series(excess),
        "states_exceeding": states_exceeding(excess),
        "weeks_exceeding": weeks_exceeding(excess),
        "snapshot": week_snapshot(excess, tables["locations"], weeks_ago),
        "cumulative_excess": cumulative_excess(excess, since),
        "deaths_by_year": deaths_by_year(excess, years),
        "age_series": age_series(tables["age"]),
        "us_cases": case_death_mortality(cases),
        "state_cases": case_death_mortality(cases, case_code),
        "mortality_comparison": mortality_comparison(cases, case_code),
    }


def run_pipeline(
    datasets: Optional[Mapping[str, pd.DataFrame]] = None,
    locations: Optional[pd.DataFrame] = None,
    *,
    state: str = DEFAULT_STATE,
    case_state: str = DEFAULT_CASE_STATE,
    weeks_ago: int = DEFAULT_WEEKS_AGO,
    years: Sequence[int] = DEFAULT_YEARS,
    since: str = DEFAULT_SINCE,
) -> Dict[str, object]:
    """Run the full pipeline and return every view.

    Parameters
    ----------
    datasets : mapping, optional
        Raw ``excess``, ``age`` and ``cases`` tables.  Fetched from the CDC
        when omitted.
    locations : pd.DataFrame, optional
        Raw state location table.  The packaged copy is used when omitted.
    state, case_state : str
        State of interest for the weekly and the daily charts.
    weeks_ago : int
        Which week the bubble map shows (0 = most recent).
    years : sequence of int
        Calendar years for the per-year charts.
    since : str
        Start date (exclusive) of the cumulative excess chart.

    Returns
    -------
    Dict[str, object]
        The frames produced by :func:`build_views`.
    """
    if datasets is None:
        datasets = fetch_all_datasets()
    if locations is None:
        locations = load_locations()

    tables = prepare_tables(datasets, locations)
    return build_views(
        tables,
        state=state,
        case_state=case_state,
        weeks_ago=weeks_ago,
        years=years,
        since=since,
    )
