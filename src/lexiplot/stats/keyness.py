"""
Keyness Statistics
==================

Scores how strongly each feature is over- or under-represented in a target
row relative to a reference row (or to the sum of every other row).

For each feature the 2x2 contingency table is::

                    target      reference
    feature           a             b
    other tokens      c             d

where ``c`` and ``d`` are the remaining token totals of each side. The
statistic is signed: positive when the feature occurs in the target more
often than expected under independence (``a*d > b*c``), negative otherwise.
Swapping target and reference therefore flips the sign and leaves the
magnitude unchanged for ``chi2``, ``lr`` and ``exact``.

Measures
--------
    chi2
        Pearson's chi-squared. ``correction="default"`` applies Yates'
        continuity correction. p-value from chi-squared with 1 df.
    lr
        Likelihood-ratio G2. ``correction="default"`` applies Williams'
        correction. p-value from chi-squared with 1 df.
    exact
        Log odds ratio (0.5 added to every cell) with the two-sided p-value
        of Fisher's exact test.
    pmi
        Pointwise mutual information of the target cell, computed on the
        table with 0.5 added to every cell. No p-value.

Features that occur in neither the target nor the reference are excluded.
``direction`` follows the sign of the statistic, or of ``a*d - b*c`` when a
continuity correction has reduced the statistic to zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from ..dfm.builder import GroupSpec, group_matrix
from ..dfm.matrix import FeatureMatrix
from ..errors import EmptyResultError, InvalidGroupError

logger = logging.getLogger(__name__)

KEYNESS_MEASURES = ("chi2", "lr", "exact", "pmi")
CORRECTIONS = ("default", "yates", "williams", "none")


@dataclass(frozen=True)
class KeynessRecord:
    """Association score of one feature with the target."""
    feature: str
    statistic: float
    p_value: Optional[float]
    direction: str  # "target" or "reference"
    n_target: float
    n_reference: float


# ---------------------------------------------------------------------------
# Test statistics over vectors of 2x2 tables
# ---------------------------------------------------------------------------

def _chi2(a: NDArray, b: NDArray, c: NDArray, d: NDArray, yates: bool) -> NDArray:
    n = a + b + c + d
    diff = np.abs(a * d - b * c)
    if yates:
        diff = np.maximum(diff - n / 2.0, 0.0)
    denom = (a + b) * (c + d) * (a + c) * (b + d)
    out = np.zeros_like(n)
    ok = denom > 0
    out[ok] = n[ok] * diff[ok] ** 2 / denom[ok]
    return out


def _xlogx_ratio(obs: NDArray, exp: NDArray) -> NDArray:
    out = np.zeros_like(obs)
    ok = (obs > 0) & (exp > 0)
    out[ok] = obs[ok] * np.log(obs[ok] / exp[ok])
    return out


def _g2(a: NDArray, b: NDArray, c: NDArray, d: NDArray, williams: bool) -> NDArray:
    n = a + b + c + d
    row1, row2 = a + b, c + d
    col1, col2 = a + c, b + d
    g2 = 2.0 * (
        _xlogx_ratio(a, row1 * col1 / n)
        + _xlogx_ratio(b, row1 * col2 / n)
        + _xlogx_ratio(c, row2 * col1 / n)
        + _xlogx_ratio(d, row2 * col2 / n)
    )
    if williams:
        with np.errstate(divide="ignore", invalid="ignore"):
            q = 1.0 + (n / row1 + n / row2 - 1.0) * (n / col1 + n / col2 - 1.0) / (6.0 * n)
        q = np.where(np.isfinite(q) & (q > 0), q, 1.0)
        g2 = g2 / q
    return g2


def _log_odds(a: NDArray, b: NDArray, c: NDArray, d: NDArray) -> NDArray:
    return np.log(((a + 0.5) * (d + 0.5)) / ((b + 0.5) * (c + 0.5)))


def _pmi(a: NDArray, b: NDArray, c: NDArray, d: NDArray) -> NDArray:
    a, b, c, d = a + 0.5, b + 0.5, c + 0.5, d + 0.5
    n = a + b + c + d
    return np.log(a * n / ((a + b) * (a + c)))


def _fisher_pvalues(a: NDArray, b: NDArray, c: NDArray, d: NDArray) -> NDArray:
    table = np.rint(np.stack([a, b, c, d], axis=1)).astype(np.int64)
    return np.array([
        stats.fisher_exact([[t[0], t[1]], [t[2], t[3]]], alternative="two-sided")[1]
        for t in table
    ])


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def compute_keyness(
    matrix: FeatureMatrix,
    target: str,
    reference: Optional[str] = None,
    measure: str = "chi2",
    correction: str = "default",
    groups: Optional[GroupSpec] = None,
) -> list[KeynessRecord]:
    """
    Score features for over-representation in ``target``.

    Parameters
    ----------
    matrix : FeatureMatrix
        Count matrix. Rows are documents or document groups.
    target : str
        Row label of the target.
    reference : str, optional
        Row label of the reference. Defaults to the sum of all other rows.
    measure : str
        One of ``KEYNESS_MEASURES``.
    correction : str
        ``default`` (Yates for chi2, Williams for lr), ``yates``,
        ``williams`` or ``none``.
    groups : str or sequence, optional
        Group rows before scoring, as ``group_matrix`` does.

    Returns
    -------
    list[KeynessRecord]
        Sorted by absolute statistic, largest first; ties keep column order.
    """
    if measure not in KEYNESS_MEASURES:
        raise ValueError(f"Unknown keyness measure: {measure}. Use one of {KEYNESS_MEASURES}.")
    if correction not in CORRECTIONS:
        raise ValueError(f"Unknown correction: {correction}. Use one of {CORRECTIONS}.")

    if groups is not None:
        matrix = group_matrix(matrix, groups)

    t_idx = matrix.row_index(str(target))
    counts = matrix.values

    if reference is None:
        if matrix.ndoc < 2:
            raise InvalidGroupError("Keyness needs at least one reference row besides the target")
        target_row = np.asarray(counts[t_idx].toarray()).ravel()
        ref_row = np.asarray(counts.sum(axis=0)).ravel() - target_row
    else:
        r_idx = matrix.row_index(str(reference))
        if r_idx == t_idx:
            raise ValueError("Target and reference must be different rows")
        target_row = np.asarray(counts[t_idx].toarray()).ravel()
        ref_row = np.asarray(counts[r_idx].toarray()).ravel()

    total_t, total_r = float(target_row.sum()), float(ref_row.sum())
    if total_t == 0 or total_r == 0:
        raise EmptyResultError("Target or reference row has no tokens")

    present = np.flatnonzero((target_row + ref_row) > 0)
    a = target_row[present]
    b = ref_row[present]
    c = total_t - a
    d = total_r - b
    sign = np.where(a * d - b * c > 0, 1.0, -1.0)

    p_values: Optional[NDArray] = None
    if measure == "chi2":
        yates = correction in ("default", "yates")
        magnitude = _chi2(a, b, c, d, yates=yates)
        statistic = sign * magnitude
        p_values = stats.chi2.sf(magnitude, df=1)
    elif measure == "lr":
        williams = correction in ("default", "williams")
        magnitude = _g2(a, b, c, d, williams=williams)
        statistic = sign * magnitude
        p_values = stats.chi2.sf(magnitude, df=1)
    elif measure == "exact":
        statistic = _log_odds(a, b, c, d)
        p_values = _fisher_pvalues(a, b, c, d)
    else:
        statistic = _pmi(a, b, c, d)

    # A statistic shrunk to zero by a correction keeps the sign of ad - bc
    positive = np.where(statistic != 0, statistic > 0, sign > 0)
    order = np.argsort(-np.abs(statistic), kind="stable")
    records = [
        KeynessRecord(
            feature=matrix.features[present[k]],
            statistic=float(statistic[k]),
            p_value=None if p_values is None else float(p_values[k]),
            direction="target" if positive[k] else "reference",
            n_target=float(a[k]),
            n_reference=float(b[k]),
        )
        for k in order
    ]

    if not records:
        raise EmptyResultError("No feature occurs in the target or the reference")

    logger.debug(
        f"Keyness ({measure}) of {target!r} vs {reference or 'rest'!r}: "
        f"{len(records)} features"
    )
    return records
