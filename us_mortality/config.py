"""
Configuration constants for the US excess mortality pipeline.
"""

from pathlib import Path
from typing import Dict, List, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
# CDC open data (Socrata) CSV exports
DATASETS: Dict[str, str] = {
    # Excess deaths associated with COVID-19, weekly by state
    "excess": "https://data.cdc.gov/api/views/xkkf-xrst/rows.csv",
    # Provisional COVID-19 death counts by sex, age and week
    "age": "https://data.cdc.gov/api/views/vsak-wrfu/rows.csv",
    # COVID-19 cases and deaths by state over time (daily)
    "cases": "https://data.cdc.gov/api/views/9mfq-cb36/rows.csv",
}

# State name -> latitude/longitude; a copy ships with the package.
LOCATIONS_URL: str = "https://blogs.mathworks.com/images/loren/2020/stateLocation.csv"
LOCATIONS_SOURCE: Path = Path(__file__).resolve().parent / "data" / "state_locations.csv"

HTTP_TIMEOUT: int = 60
USER_AGENT: str = "us-mortality-explorer/0.1"

# ======================================================
#  SCHEMAS
# ======================================================
EXCESS_COLUMNS: List[str] = [
    "State",
    "WeekEndingDate",
    "Type",
    "Outcome",
    "ObservedNumber",
    "AverageExpectedCount",
    "UpperBoundThreshold",
    "ExceedsThreshold",
    "ExcessLowerEstimate",
    "ExcessHigherEstimate",
]
EXCESS_NUMERIC: List[str] = [
    "ObservedNumber",
    "AverageExpectedCount",
    "UpperBoundThreshold",
    "ExcessLowerEstimate",
    "ExcessHigherEstimate",
]
AGE_COLUMNS: List[str] = ["EndWeek", "AgeGroup", "Sex", "COVID_19Deaths"]
CASE_COLUMNS: List[str] = ["state", "submission_date", "new_case", "new_death"]
LOCATION_COLUMNS: List[str] = ["State", "Latitude", "Longitude"]

# Closed enumerations; values outside these raise a SchemaError.
TYPE_VALUES: List[str] = ["Predicted (weighted)", "Unweighted"]
OUTCOME_VALUES: List[str] = ["All causes", "All causes, excluding COVID-19"]
SEX_VALUES: List[str] = ["All Sexes", "All Sex", "Female", "Male", "Unknown"]

EXCESS_TYPE: str = "Predicted (weighted)"
EXCESS_OUTCOME: str = "All causes"
EXCEEDS_TRUE_TOKEN: str = "true"

# Aggregate rows that would double count
NATIONAL_LABEL: str = "United States"
AGE_EXCLUSIONS: List[str] = ["All Ages"]
SEX_EXCLUSIONS: List[str] = ["All Sexes", "All Sex"]

# ======================================================
#  JURISDICTIONS
# ======================================================
# Full names used by the weekly dataset <-> codes used by the daily dataset
STATE_CODES: Dict[str, str] = {
    "Alabama": "AL",
    "Alaska": "AK",
    "Arizona": "AZ",
    "Arkansas": "AR",
    "California": "CA",
    "Colorado": "CO",
    "Connecticut": "CT",
    "Delaware": "DE",
    "District of Columbia": "DC",
    "Florida": "FL",
    "Georgia": "GA",
    "Hawaii": "HI",
    "Idaho": "ID",
    "Illinois": "IL",
    "Indiana": "IN",
    "Iowa": "IA",
    "Kansas": "KS",
    "Kentucky": "KY",
    "Louisiana": "LA",
    "Maine": "ME",
    "Maryland": "MD",
    "Massachusetts": "MA",
    "Michigan": "MI",
    "Minnesota": "MN",
    "Mississippi": "MS",
    "Missouri": "MO",
    "Montana": "MT",
    "Nebraska": "NE",
    "Nevada": "NV",
    "New Hampshire": "NH",
    "New Jersey": "NJ",
    "New Mexico": "NM",
    "New York": "NY",
    "New York City": "NYC",
    "North Carolina": "NC",
    "North Dakota": "ND",
    "Ohio": "OH",
    "Oklahoma": "OK",
    "Oregon": "OR",
    "Pennsylvania": "PA",
    "Puerto Rico": "PR",
    "Rhode Island": "RI",
    "South Carolina": "SC",
    "South Dakota": "SD",
    "Tennessee": "TN",
    "Texas": "TX",
    "Utah": "UT",
    "Vermont": "VT",
    "Virginia": "VA",
    "Washington": "WA",
    "West Virginia": "WV",
    "Wisconsin": "WI",
    "Wyoming": "WY",
}

# ======================================================
#  ANALYSIS DEFAULTS
# ======================================================
DEFAULT_STATE: str = "Rhode Island"
DEFAULT_CASE_STATE: str = "CA"
DEFAULT_WEEKS_AGO: int = 1
DEFAULT_YEARS: List[int] = [2017, 2018, 2019, 2020]
DEFAULT_SINCE: str = "2020-02-01"

MOVING_WINDOW: int = 7
MORTALITY_LAG: int = 14
MORTALITY_RANGE: Tuple[float, float] = (0, 10)

# Continental US
MAP_LAT_RANGE: Tuple[float, float] = (20, 51)
MAP_LON_RANGE: Tuple[float, float] = (-126, -65)
BUBBLE_SIZE_LIMITS: Tuple[float, float] = (0, 10)

GLOBAL_YEAR_MIN: int = 2017
GLOBAL_YEAR_MAX: int = 2023
