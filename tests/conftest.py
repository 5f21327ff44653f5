import pandas as pd
import pytest

WEEKS = ["2020-01-04", "2020-01-11", "2020-01-18"]

# state -> (observed, expected, upper bound, lower excess) per week
WEEKLY = {
    "Rhode Island": ([100, 150, 90], 100, 120, [0, 10, 0]),
    "California": ([500, 700, 650], 550, 600, [0, 50, 20]),
}


def _excess_row(state, week, observed, expected, upper, lower, **overrides):
    row = {
        "WeekEndingDate": week,
        "State": state,
        "ObservedNumber": observed,
        "UpperBoundThreshold": upper,
        "ExceedsThreshold": "true" if observed > upper else "false",
        "AverageExpectedCount": expected,
        "ExcessEstimate": max(observed - expected, 0),
        "Year": int(week[:4]),
        "Type": "Predicted (weighted)",
        "Outcome": "All causes",
        "ExcessLowerEstimate": lower,
        "ExcessHigherEstimate": lower + 5,
    }
    row.update(overrides)
    return row


@pytest.fixture
def raw_excess() -> pd.DataFrame:
    """Weekly excess table as it looks after download and header normalization.

    Two states over three weeks, plus rows the preparation step must drop:
    the national aggregate, the unweighted series and a second outcome.
    """
    rows = []
    for i, week in enumerate(WEEKS):
        for state, (observed, expected, upper, lower) in WEEKLY.items():
            rows.append(_excess_row(state, week, observed[i], expected, upper, lower[i]))
            rows.append(
                _excess_row(
                    state, week, observed[i] + 1, expected, upper, 0, Type="Unweighted"
                )
            )
            rows.append(
                _excess_row(
                    state,
                    week,
                    observed[i] - 5,
                    expected,
                    upper,
                    0,
                    Outcome="All causes, excluding COVID-19",
                )
            )
        total = sum(v[0][i] for v in WEEKLY.values())
        rows.append(_excess_row("United States", week, total, 650, 720, 0))
    return pd.DataFrame(rows)


@pytest.fixture
def raw_age() -> pd.DataFrame:
    rows = []
    ages = {"All Ages": 100, "Under 1 year": 1, "85 years and over": 30, "25-34 years": 5}
    for w, week in enumerate(["2020-04-04", "2020-04-11"]):
        for age, base in ages.items():
            male = base + w
            female = base + w + 1
            for sex, deaths in (
                ("All Sexes", male + female + 1000),
                ("Male", male),
                ("Female", female),
            ):
                rows.append(
                    {
                        "DataAsOf": "2021-01-06",
                        "MMWRWeek": 14 + w,
                        "EndWeek": week,
                        "Sex": sex,
                        "AgeGroup": age,
                        "TotalDeaths": deaths * 3,
                        "COVID_19Deaths": deaths,
                    }
                )
    return pd.DataFrame(rows)


@pytest.fixture
def raw_cases() -> pd.DataFrame:
    """Twenty days of cases: CA and NY each report 10 cases a day, CA one death."""
    rows = []
    for day in pd.date_range("2020-03-01", periods=20, freq="D"):
        for state, deaths in (("CA", 1), ("NY", 0)):
            rows.append(
                {
                    "submission_date": day.strftime("%m/%d/%Y"),
                    "state": state,
                    "tot_cases": 0,
                    "new_case": 10,
                    "new_death": deaths,
                }
            )
    return pd.DataFrame(rows)


@pytest.fixture
def raw_locations() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "State": ["Rhode Island", "California"],
            "Latitude": [41.68, 36.12],
            "Longitude": [-71.51, -119.68],
        }
    )


@pytest.fixture
def raw_datasets(raw_excess, raw_age, raw_cases):
    return {"excess": raw_excess, "age": raw_age, "cases": raw_cases}


@pytest.fixture
def tables(raw_datasets, raw_locations):
    from us_mortality.pipeline import prepare_tables

    return prepare_tables(raw_datasets, raw_locations)
