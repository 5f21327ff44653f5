"""Group-by-key reductions and series arithmetic.

The helpers here are deliberately small and pandas-backed:

* :func:`group_key` / :func:`reduce_groups` split rows by a key column and
  reduce each group to one value, ordered by ascending key.
* :func:`cumulative_sum`, :func:`moving_sum` and :func:`shift_right` operate
  on the per-group series those produce.
* :func:`lag_ratio` and :func:`normalized_excess` are the two derived
  metrics used by the charts, with explicit division-by-zero policies.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

ReduceOp = Union[str, Callable[[np.ndarray], float]]

_NAMED_OPS = ("sum", "mean", "max", "min", "count")


def _as_series(values: Iterable) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.astype(float)
    return pd.Series(np.asarray(list(values), dtype=float))


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def group_key(df: pd.DataFrame, key_col: str) -> Tuple[np.ndarray, pd.Index]:
    """Assign an integer group id to every row of ``df``.

    Two rows share an id iff their ``key_col`` values are equal.  Ids are
    numbered in ascending key order, so ``keys[i]`` is the key of group
    ``i``.  Rows with a missing key get ``-1``.

    Returns
    -------
    Tuple[np.ndarray, pd.Index]
        ``(ids, keys)``.
    """
    codes, uniques = pd.factorize(df[key_col], sort=True)
    return codes, pd.Index(uniques, name=key_col)


def reduce_groups(
    values: Sequence | pd.Series,
    group_ids: Sequence[int] | np.ndarray,
    op: ReduceOp = "sum",
) -> np.ndarray:
    """Reduce ``values`` within each group.

    Parameters
    ----------
    values : sequence or pd.Series
        One value per row; booleans count as 0/1.
    group_ids : sequence of int
        Output of :func:`group_key`; rows with id ``-1`` are ignored.
    op : str or callable, default "sum"
        ``"sum"``, ``"mean"``, ``"max"``, ``"min"``, ``"count"`` or a
        callable reducing a 1-D array (in original row order) to a scalar.

    Returns
    -------
    np.ndarray
        One value per distinct group id, in ascending id (and so key)
        order.  Missing values are skipped; an all-missing group sums to 0.
    """
    vals = pd.Series(np.asarray(values, dtype=float))
    ids = np.asarray(group_ids)
    if len(vals) != len(ids):
        raise ValueError(
            f"values and group_ids differ in length ({len(vals)} != {len(ids)})"
        )
    keep = ids >= 0
    grouped = vals[keep].groupby(ids[keep], sort=True)

    if callable(op):
        out = grouped.agg(lambda s: op(s.to_numpy()))
    elif op in _NAMED_OPS:
        out = getattr(grouped, op)()
    else:
        raise ValueError(f"Unsupported reduction {op!r}; expected {_NAMED_OPS}")
    return out.to_numpy(dtype=float)


def group_reduce(
    df: pd.DataFrame,
    key_col: str,
    value_cols: List[str],
    op: ReduceOp = "sum",
) -> pd.DataFrame:
    """Group ``df`` by ``key_col`` and reduce each of ``value_cols``.

    The result is indexed by the distinct key values in ascending order.
    """
    ids, keys = group_key(df, key_col)
    data = {col: reduce_groups(df[col], ids, op) for col in value_cols}
    return pd.DataFrame(data, index=keys)


# ---------------------------------------------------------------------------
# Series operations
# ---------------------------------------------------------------------------


def cumulative_sum(series: Iterable) -> pd.Series:
    """Running total; missing values count as zero."""
    return _as_series(series).fillna(0.0).cumsum()


def moving_sum(series: Iterable, window: int) -> pd.Series:
    """Trailing moving sum over ``window`` elements.

    Element ``i`` is the sum of ``series[max(0, i - window + 1) .. i]``, so
    the first ``window - 1`` elements sum only the available prefix.
    """
    if window < 1:
        raise ValueError(f"window must be a positive integer, got {window}")
    return _as_series(series).rolling(window, min_periods=1).sum()


def shift_right(series: Iterable, periods: int) -> pd.Series:
    """Delay a series by ``periods`` elements, filling the gap with zeros."""
    if periods < 0:
        raise ValueError(f"periods must be non-negative, got {periods}")
    return _as_series(series).shift(periods, fill_value=0.0)


def lag_ratio(
    numerator: Iterable, denominator: Iterable, lag_periods: int
) -> pd.Series:
    """Percentage of ``numerator[i]`` over ``denominator[i - lag_periods]``.

    The denominator is right-shifted and zero-filled.  Where the shifted
    denominator is zero the result is ``0`` if the numerator is also zero
    and ``NaN`` otherwise.
    """
    num = _as_series(numerator)
    den = shift_right(denominator, lag_periods)
    if len(num) != len(den):
        raise ValueError("numerator and denominator must have the same length")
    den.index = num.index

    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = 100.0 * num / den.where(den != 0)
    ratio = ratio.mask((den == 0) & (num == 0), 0.0)
    return ratio


def normalized_excess(
    observed: Iterable, upper_bound: Iterable, expected: Iterable
) -> pd.Series:
    """Excess above the threshold in units of (threshold - expected).

    Computes ``max((observed - upper_bound) / (upper_bound - expected), 0)``.
    Rows where ``upper_bound == expected`` or any input is missing yield 0,
    so the result is never negative and never NaN.
    """
    obs = _as_series(observed)
    upper = _as_series(upper_bound)
    expect = _as_series(expected)
    upper.index = obs.index
    expect.index = obs.index

    spread = upper - expect
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = (obs - upper) / spread.where(spread != 0)
    return ratio.fillna(0.0).clip(lower=0.0)
