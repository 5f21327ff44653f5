import math

import numpy as np
import pandas as pd
import pytest

from us_mortality import pipeline
from us_mortality.errors import EmptyGroupError, SchemaError


# ---------------------------------------------------------------------------
# Normalizer helpers
# ---------------------------------------------------------------------------


def test_coerce_categories_closed_enumeration():
    df = pd.DataFrame({"Type": ["Unweighted", " Predicted (weighted) ", None]})
    out = pipeline.coerce_categories(
        df, ["Type"], {"Type": ["Predicted (weighted)", "Unweighted"]}
    )
    assert isinstance(out["Type"].dtype, pd.CategoricalDtype)
    assert list(out["Type"].cat.categories) == ["Predicted (weighted)", "Unweighted"]
    assert (out["Type"] == "Predicted (weighted)").tolist() == [False, True, False]
    # input untouched
    assert not isinstance(df["Type"].dtype, pd.CategoricalDtype)


def test_coerce_categories_rejects_unknown_values():
    df = pd.DataFrame({"Type": ["Unweighted", "Predicted (weighed)"]})
    with pytest.raises(SchemaError, match="Predicted \\(weighed\\)"):
        pipeline.coerce_categories(df, ["Type"], {"Type": ["Unweighted"]})


def test_coerce_categories_open_enumeration_is_sorted():
    df = pd.DataFrame({"State": ["Texas", "Alaska", "Texas"]})
    out = pipeline.coerce_categories(df, ["State"])
    assert list(out["State"].cat.categories) == ["Alaska", "Texas"]


def test_coerce_boolean_exact_match():
    df = pd.DataFrame({"flag": ["true", "false", "True", None, "true "]})
    out = pipeline.coerce_boolean(df, "flag", "true")
    assert out["flag"].tolist() == [True, False, False, False, False]
    assert out["flag"].dtype == bool


def test_coerce_boolean_keeps_parsed_booleans():
    df = pd.DataFrame({"flag": [True, False, np.nan]})
    assert pipeline.coerce_boolean(df, "flag")["flag"].tolist() == [True, False, False]


def test_coerce_numeric_handles_thousands_separators():
    df = pd.DataFrame({"n": ["1,234", "56", "", None]})
    out = pipeline.coerce_numeric(df, ["n"])
    assert out["n"].iloc[0] == 1234.0
    assert out["n"].iloc[1] == 56.0
    assert out["n"].iloc[2:].isna().all()


def test_coerce_numeric_rejects_text_column():
    with pytest.raises(SchemaError, match="no numeric values"):
        pipeline.coerce_numeric(pd.DataFrame({"n": ["a", "b"]}), ["n"])


def test_coerce_dates():
    df = pd.DataFrame({"d": ["2020-01-04", "not a date"]})
    out = pipeline.coerce_dates(df, ["d"])
    assert out["d"].iloc[0] == pd.Timestamp("2020-01-04")
    assert pd.isna(out["d"].iloc[1])


def test_missing_columns_raise_schema_error(raw_excess):
    with pytest.raises(SchemaError, match="ObservedNumber"):
        pipeline.prepare_excess(raw_excess.drop(columns=["ObservedNumber"]))


def test_filter_rows_returns_new_frame():
    df = pd.DataFrame({"x": [1, 2, 3]}, index=[10, 11, 12])
    out = pipeline.filter_rows(df, lambda d: d["x"] > 1)
    assert out["x"].tolist() == [2, 3]
    assert list(out.index) == [0, 1]
    assert len(df) == 3


def test_resolve_state():
    assert pipeline.resolve_state("ca", "name") == "California"
    assert pipeline.resolve_state("California", "code") == "CA"
    assert pipeline.resolve_state("rhode island") == "Rhode Island"
    assert pipeline.resolve_state("NYC", "code") == "NYC"
    with pytest.raises(ValueError, match="Unknown state"):
        pipeline.resolve_state("Atlantis")
    with pytest.raises(ValueError):
        pipeline.resolve_state("CA", "abbrev")


def test_week_of_year_starts_on_sunday():
    dates = pd.to_datetime(
        ["2020-01-04", "2020-01-05", "2017-01-01", "2017-01-07", "2017-01-08"]
    )
    assert pipeline.week_of_year(dates).tolist() == [1, 2, 1, 1, 2]


# ---------------------------------------------------------------------------
# Table preparation
# ---------------------------------------------------------------------------


def test_prepare_excess_keeps_exactly_the_matching_rows(raw_excess):
    out = pipeline.prepare_excess(raw_excess)
    expected = raw_excess[
        (raw_excess["Type"] == "Predicted (weighted)")
        & (raw_excess["Outcome"] == "All causes")
        & (raw_excess["State"] != "United States")
    ]
    assert len(out) == len(expected) == 6
    assert set(out["State"].astype(str)) == {"California", "Rhode Island"}
    assert (out["Type"] == "Predicted (weighted)").all()
    assert (out["Outcome"] == "All causes").all()
    assert out["ExceedsThreshold"].dtype == bool
    assert out["WeekEndingDate"].is_monotonic_increasing
    # one record per (State, WeekEndingDate)
    assert not out.duplicated(["State", "WeekEndingDate"]).any()


def test_prepare_excess_other_combination(raw_excess):
    out = pipeline.prepare_excess(raw_excess, type_="Unweighted")
    assert len(out) == 6
    assert out["ObservedNumber"].iloc[0] in (501.0, 101.0)


def test_prepare_excess_derives_missing_flag(raw_excess):
    out = pipeline.prepare_excess(raw_excess.drop(columns=["ExceedsThreshold"]))
    ri = out[out["State"] == "Rhode Island"]
    assert ri["ExceedsThreshold"].tolist() == [False, True, False]


def test_prepare_excess_rejects_unknown_outcome(raw_excess):
    raw_excess.loc[0, "Outcome"] = "Some causes"
    with pytest.raises(SchemaError):
        pipeline.prepare_excess(raw_excess)


def test_prepare_age_deaths_drops_aggregates(raw_age):
    out = pipeline.prepare_age_deaths(raw_age)
    assert "All Ages" not in set(out["AgeGroup"].astype(str))
    assert set(out["Sex"].astype(str)) == {"Male", "Female"}
    assert len(out) == 2 * 3 * 2


def test_prepare_cases(raw_cases):
    out = pipeline.prepare_cases(raw_cases)
    assert out["submission_date"].iloc[0] == pd.Timestamp("2020-03-01")
    assert out["new_case"].dtype == float
    assert list(out.columns) == ["state", "submission_date", "new_case", "new_death"]


def test_prepare_tables_requires_every_dataset(raw_excess, raw_locations):
    with pytest.raises(SchemaError, match="age"):
        pipeline.prepare_tables({"excess": raw_excess}, raw_locations)


# ---------------------------------------------------------------------------
# Weekly views
# ---------------------------------------------------------------------------


def test_state_series(tables):
    out = pipeline.state_series(tables["excess"], "RI")
    assert out["ObservedNumber"].tolist() == [100.0, 150.0, 90.0]
    assert out["UpperBoundThreshold"].tolist() == [120.0, 120.0, 120.0]
    assert out.index.name == "WeekEndingDate"


def test_state_series_without_rows_is_empty(tables, caplog):
    out = pipeline.state_series(tables["excess"], "Texas")
    assert out.empty
    assert list(out.columns) == ["ObservedNumber", "UpperBoundThreshold"]
    assert "No rows for state 'Texas'" in caplog.text
    with pytest.raises(EmptyGroupError):
        pipeline.state_series(tables["excess"], "Texas", strict=True)


def test_national_series_sums_states(tables):
    out = pipeline.national_series(tables["excess"])
    assert out["ObservedNumber"].tolist() == [600.0, 850.0, 740.0]
    assert out["UpperBoundThreshold"].tolist() == [720.0, 720.0, 720.0]


def test_states_exceeding(tables):
    out = pipeline.states_exceeding(tables["excess"])
    assert out["StatesExceeding"].tolist() == [0, 2, 1]


def test_weeks_exceeding(tables):
    out = pipeline.weeks_exceeding(tables["excess"])
    assert out.loc["California", "WeeksExceeding"] == 2
    assert out.loc["Rhode Island", "WeeksExceeding"] == 1


def test_three_week_table_exceeds_once():
    df = pd.DataFrame(
        {
            "State": ["Rhode Island"] * 3,
            "WeekEndingDate": pd.to_datetime(["2020-01-04", "2020-01-11", "2020-01-18"]),
            "ObservedNumber": [100.0, 150.0, 90.0],
            "UpperBoundThreshold": [120.0, 120.0, 120.0],
        }
    )
    flagged = pipeline.derive_exceeds_threshold(df)
    out = pipeline.weeks_exceeding(flagged)
    assert out["WeeksExceeding"].tolist() == [1]


def test_week_snapshot_latest_week(tables):
    out = pipeline.week_snapshot(tables["excess"], tables["locations"], 0)
    assert out["State"].tolist() == ["California"]
    assert out["BubbleSize"].tolist() == [1.0]
    assert out["Latitude"].tolist() == [36.12]
    assert out["WeekEndingDate"].iloc[0] == pd.Timestamp("2020-01-18")


def test_week_snapshot_weeks_ago(tables):
    out = pipeline.week_snapshot(tables["excess"], tables["locations"], 1)
    sizes = dict(zip(out["State"], out["BubbleSize"]))
    assert sizes == {"California": 2.0, "Rhode Island": 1.5}
    assert out["ExceedsThreshold"].all()


def test_week_snapshot_out_of_range(tables):
    out = pipeline.week_snapshot(tables["excess"], tables["locations"], 3)
    assert out.empty
    assert "BubbleSize" in out.columns
    with pytest.raises(EmptyGroupError):
        pipeline.week_snapshot(tables["excess"], tables["locations"], 3, strict=True)
    with pytest.raises(ValueError):
        pipeline.week_snapshot(tables["excess"], tables["locations"], -1)


def test_week_snapshot_missing_location(tables, caplog):
    locations = tables["locations"][tables["locations"]["State"] != "California"]
    out = pipeline.week_snapshot(tables["excess"], locations, 0)
    assert math.isnan(out["Latitude"].iloc[0])
    assert "No map location for California" in caplog.text


def test_cumulative_excess(tables):
    out = pipeline.cumulative_excess(tables["excess"], "2020-01-01")
    assert out["CumulativeLower"].tolist() == [0.0, 60.0, 80.0]
    assert out["CumulativeHigher"].tolist() == [10.0, 80.0, 110.0]


def test_cumulative_excess_start_is_exclusive(tables):
    out = pipeline.cumulative_excess(tables["excess"], "2020-01-04")
    assert out["CumulativeLower"].tolist() == [60.0, 80.0]
    assert pipeline.cumulative_excess(tables["excess"], "2021-01-01").empty


def test_deaths_by_year(tables):
    out = pipeline.deaths_by_year(tables["excess"], [2019, 2020])
    assert out["year"].tolist() == [2020, 2020, 2020]
    assert out["week"].tolist() == [1, 2, 3]
    assert out["ObservedNumber"].tolist() == [600.0, 850.0, 740.0]
    assert out["CumulativeObserved"].tolist() == [600.0, 1450.0, 2190.0]


def test_deaths_by_year_drops_missing_counts(tables):
    excess = tables["excess"].copy()
    excess.loc[excess["State"] == "California", "ObservedNumber"] = np.nan
    out = pipeline.deaths_by_year(excess, [2020])
    assert out["ObservedNumber"].tolist() == [100.0, 150.0, 90.0]


def test_deaths_by_year_without_data(tables):
    assert pipeline.deaths_by_year(tables["excess"], [2015]).empty
    with pytest.raises(EmptyGroupError):
        pipeline.deaths_by_year(tables["excess"], [2015], strict=True)


# ---------------------------------------------------------------------------
# Age and case views
# ---------------------------------------------------------------------------


def test_age_series_sums_sexes(tables):
    out = pipeline.age_series(tables["age"])
    assert list(out.columns) == ["Under 1 year", "25-34 years", "85 years and over"]
    # male + female = 2 * base + 2 * week + 1
    assert out["Under 1 year"].tolist() == [3.0, 5.0]
    assert out["85 years and over"].tolist() == [61.0, 63.0]


def test_case_death_mortality_national(tables):
    out = pipeline.case_death_mortality(tables["cases"])
    assert len(out) == 20
    assert out["cases"].iloc[0] == 20.0
    assert out["cases"].iloc[6:].eq(140.0).all()
    assert out["deaths"].iloc[6] == 7.0
    # no cases 14 days earlier yet, but deaths were reported
    assert out["mortality_pct"].iloc[:14].isna().all()
    assert out["mortality_pct"].iloc[14] == pytest.approx(35.0)
    assert out["mortality_pct"].iloc[19] == pytest.approx(7 / 120 * 100)


def test_case_death_mortality_state(tables):
    out = pipeline.case_death_mortality(tables["cases"], "California")
    assert out["cases"].iloc[-1] == 70.0
    assert out["mortality_pct"].iloc[14] == pytest.approx(70.0)

    ny = pipeline.case_death_mortality(tables["cases"], "NY")
    # zero deaths over zero lagged cases
    assert ny["mortality_pct"].iloc[:14].eq(0.0).all()


def test_case_death_mortality_unknown_jurisdiction(tables):
    assert pipeline.case_death_mortality(tables["cases"], "TX").empty
    with pytest.raises(EmptyGroupError):
        pipeline.case_death_mortality(tables["cases"], "TX", strict=True)


def test_mortality_comparison(tables):
    out = pipeline.mortality_comparison(tables["cases"], "ca")
    assert list(out.columns) == ["US", "CA"]
    assert out["CA"].iloc[14] == pytest.approx(70.0)
    assert out["US"].iloc[14] == pytest.approx(35.0)


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def test_run_pipeline_with_given_data(raw_datasets, raw_locations):
    payload = pipeline.run_pipeline(
        raw_datasets,
        raw_locations,
        state="RI",
        case_state="California",
        weeks_ago=1,
        years=[2020],
    )
    assert payload["state"] == "Rhode Island"
    assert payload["case_state"] == "CA"
    assert len(payload["snapshot"]) == 2
    assert len(payload["deaths_by_year"]) == 3
    assert payload["state_cases"]["cases"].iloc[-1] == 70.0


def test_run_pipeline_fetches_when_no_data_given(monkeypatch, raw_datasets):
    monkeypatch.setattr(pipeline, "fetch_all_datasets", lambda: raw_datasets)
    payload = pipeline.run_pipeline(years=[2020])
    # packaged locations cover every state
    assert not payload["snapshot"]["Latitude"].isna().any()
