"""
Handles downloads from the CDC open data portal.
"""

import logging
import re
from io import StringIO
from pathlib import Path
from typing import Dict, Optional

import pandas as pd
import requests

from .config import DATASETS, HTTP_TIMEOUT, LOCATIONS_SOURCE, USER_AGENT
from .errors import FetchError

logger = logging.getLogger(__name__)

_NON_IDENTIFIER = re.compile(r"\W")


def _normalize_header(name: str) -> str:
    """Turn a display header into an identifier.

    ``"Week Ending Date"`` becomes ``WeekEndingDate`` and ``"COVID-19 Deaths"``
    becomes ``COVID_19Deaths``; identifiers such as ``submission_date`` are
    left alone.
    """
    words = str(name).strip().split()
    if len(words) > 1:
        joined = "".join(w[:1].upper() + w[1:] for w in words)
    else:
        joined = words[0] if words else "Var"
    return _NON_IDENTIFIER.sub("_", joined)


def normalize_headers(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of ``df`` with identifier-style column names."""
    return df.rename(columns={c: _normalize_header(c) for c in df.columns})


def _new_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT, "Accept": "text/csv"})
    return session


def fetch_csv(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: int = HTTP_TIMEOUT,
) -> pd.DataFrame:
    """Download a CSV resource and return it as a DataFrame.

    Raises
    ------
    FetchError
        On any network failure, HTTP error status, empty body or a body
        that does not parse as CSV.
    """
    http = session or _new_session()
    logger.info("Downloading %s", url)
    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"Could not download {url}: {exc}") from exc

    if not response.text.strip():
        raise FetchError(f"Empty response body from {url}")

    try:
        df = pd.read_csv(StringIO(response.text), low_memory=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise FetchError(f"Malformed CSV from {url}: {exc}") from exc

    logger.info("Fetched %d rows from %s", len(df), url)
    return normalize_headers(df)


def fetch_dataset(
    key: str, *, session: Optional[requests.Session] = None
) -> pd.DataFrame:
    """Fetch one of the configured datasets (``excess``, ``age`` or ``cases``)."""
    try:
        url = DATASETS[key]
    except KeyError:
        raise ValueError(
            f"Unknown dataset {key!r}; expected one of {sorted(DATASETS)}"
        ) from None
    return fetch_csv(url, session=session)


def fetch_all_datasets(
    *, session: Optional[requests.Session] = None
) -> Dict[str, pd.DataFrame]:
    """Fetch every configured dataset in turn; the first failure aborts."""
    http = session or _new_session()
    return {key: fetch_dataset(key, session=http) for key in DATASETS}


def load_locations(source: str | Path = LOCATIONS_SOURCE) -> pd.DataFrame:
    """Load the state name -> latitude/longitude reference table.

    Parameters
    ----------
    source : str or Path
        Path or URL to the locations CSV.  Defaults to the copy shipped
        with the package.
    """
    try:
        df = pd.read_csv(source)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise FetchError(f"Could not load locations from {source}: {exc}") from exc
    # The published file misspells the column
    return df.rename(columns={"Longtitude": "Longitude"})
