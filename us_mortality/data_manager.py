"""Data manager for loading and caching the raw CDC downloads.

The three CDC datasets are large and change at most weekly, so this module
keeps a copy of each raw download on disk and reuses it on later runs.
Prepared tables are additionally memoized in-process.  The cache files
include a version tag to make it easy to invalidate caches when the
download or header normalization changes.

The cache is a convenience only: any problem reading or writing it is
logged and the data is fetched again.
"""

import os
import tempfile
import logging
from pathlib import Path
from typing import Dict, Optional
from functools import lru_cache

import pandas as pd
import requests

from . import cdc_fetch, pipeline
from .config import DATASETS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cache setup
# ---------------------------------------------------------------------------
# Bump whenever the cached representation changes.
CACHE_VERSION: str = "v1"

# Checkout root when running from source; holds pyproject.toml there.
_SOURCE_ROOT: Path = Path(__file__).resolve().parent.parent


def _resolve_cache_dir() -> Path:
    """Select a writable directory for caching.

    The lookup order is:

    1. The ``DATA_CACHE_DIR`` environment variable, if set.
    2. A ``data`` folder at the repository root, only when running from a
       source checkout (an installed package never writes into
       site-packages).
    3. A temporary directory in ``/tmp``.

    Each candidate path is tested for writability by attempting to
    create and delete a sentinel file.  The first path that succeeds
    is returned.
    """
    candidates: list[Path] = []
    env = os.getenv("DATA_CACHE_DIR")
    if env:
        candidates.append(Path(env).expanduser().resolve())

    if (_SOURCE_ROOT / "pyproject.toml").is_file():
        candidates.append(_SOURCE_ROOT / "data")
    candidates.append(Path(tempfile.gettempdir()) / "us_mortality_cache")

    for path in candidates:
        try:
            path.mkdir(parents=True, exist_ok=True)
            test_file = path / ".write_test"
            test_file.write_text("ok", encoding="utf-8")
            test_file.unlink()
            return path
        except OSError:
            continue

    fallback = Path(tempfile.gettempdir()) / "us_mortality_cache"
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


def cache_path(key: str, cache_dir: Optional[Path] = None) -> Path:
    """Versioned cache file for a dataset, e.g. ``cdc_excess_v1.csv``."""
    directory = cache_dir if cache_dir is not None else _resolve_cache_dir()
    return directory / f"cdc_{key}_{CACHE_VERSION}.csv"


def _atomic_to_csv(df: pd.DataFrame, path: Path) -> None:
    """Write a DataFrame to CSV atomically.

    The CSV is first written to a temporary file in the same directory
    and then renamed to the final location.  This avoids leaving a
    partially written file if the process is interrupted mid‑write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    df.to_csv(tmp_path, index=False)
    tmp_path.replace(path)


def _read_cached(key: str, path: Path) -> Optional[pd.DataFrame]:
    if not path.exists():
        return None
    try:
        df = pd.read_csv(path, low_memory=False)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        logger.warning("Error reading cache file %s: %s; fetching again", path, exc)
        return None
    logger.info("Loaded %s from cache %s (%d rows)", key, path.name, len(df))
    return df


def load_datasets(
    force_refresh: bool = False,
    *,
    use_cache: bool = True,
    cache_dir: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> Dict[str, pd.DataFrame]:
    """
    Load the raw datasets from the disk cache if available, otherwise fetch.

    Parameters
    ----------
    force_refresh : bool, optional
        If ``True``, download every dataset even if a cache file exists.
    use_cache : bool, optional
        If ``False``, neither read nor write cache files.
    cache_dir : Path, optional
        Override the cache directory (tests, alternative storage).
    session : requests.Session, optional
        HTTP session passed through to :mod:`cdc_fetch`.

    Returns
    -------
    Dict[str, pd.DataFrame]
        Raw tables keyed by ``excess``, ``age`` and ``cases``.
    """
    if use_cache:
        directory = cache_dir if cache_dir is not None else _resolve_cache_dir()
    else:
        directory = None

    datasets: Dict[str, pd.DataFrame] = {}
    for key in DATASETS:
        path = cache_path(key, directory) if directory is not None else None
        if path is not None and not force_refresh:
            cached = _read_cached(key, path)
            if cached is not None:
                datasets[key] = cached
                continue

        df = cdc_fetch.fetch_dataset(key, session=session)
        datasets[key] = df
        if path is not None:
            try:
                _atomic_to_csv(df, path)
                logger.info("Cache updated: %s", path.name)
            except OSError as exc:
                logger.warning("Could not write cache file %s: %s", path, exc)
    return datasets


@lru_cache(maxsize=1)
def _prepared_tables() -> Dict[str, pd.DataFrame]:
    """Prepared tables for the current process."""
    return pipeline.prepare_tables(load_datasets(), cdc_fetch.load_locations())


def load_tables(force_refresh: bool = False) -> Dict[str, pd.DataFrame]:
    """
    Prepared ``excess``, ``age``, ``cases`` and ``locations`` tables.

    Computed once per process; ``force_refresh`` re-downloads the raw
    data and rebuilds them.
    """
    if force_refresh:
        _prepared_tables.cache_clear()
        # Refresh the disk cache so the memoized build reads fresh data.
        load_datasets(force_refresh=True)
        logger.info("Raw datasets re-downloaded; rebuilding prepared tables")
    return _prepared_tables()
