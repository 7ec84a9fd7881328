"""
Weighting Engine
================

Rescales the cells of a ``FeatureMatrix`` without touching its labels.

Schemes:
    count     identity
    prop      cell / row sum           (``scale=100`` gives per-100-words)
    propmax   cell / row maximum
    boolean   1 where the cell is non-zero
    logcount  1 + log10(cell) for non-zero cells

Every scheme is finally multiplied by ``scale``. The input matrix is never
modified. A row that sums to zero cannot be made proportional and raises
``DivisionByZeroError`` instead of producing NaN.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.sparse import csr_matrix, diags

from ..errors import DivisionByZeroError
from .matrix import FeatureMatrix

logger = logging.getLogger(__name__)

WEIGHT_SCHEMES = ("count", "prop", "propmax", "boolean", "logcount")


def _row_scaled(matrix: FeatureMatrix, divisors: np.ndarray, what: str) -> csr_matrix:
    empty = np.flatnonzero(divisors == 0)
    if empty.size:
        names = [matrix.docnames[i] for i in empty[:3]]
        raise DivisionByZeroError(
            f"{empty.size} row(s) have a zero {what} and cannot be weighted: {names}"
        )
    return csr_matrix(diags(1.0 / divisors) @ matrix.values)


def weight_matrix(
    matrix: FeatureMatrix,
    scheme: str = "count",
    scale: float = 1.0,
) -> FeatureMatrix:
    """
    Return a re-weighted copy of ``matrix``.

    Parameters
    ----------
    matrix : FeatureMatrix
        Matrix to weight; left unchanged.
    scheme : str
        One of ``WEIGHT_SCHEMES``.
    scale : float
        Constant multiplier applied after the scheme.
    """
    if scheme not in WEIGHT_SCHEMES:
        raise ValueError(f"Unknown weight scheme: {scheme}. Use one of {WEIGHT_SCHEMES}.")

    if scheme == "count":
        values = matrix.values.copy()
    elif scheme == "prop":
        values = _row_scaled(matrix, matrix.row_sums(), "sum")
    elif scheme == "propmax":
        row_max = matrix.values.max(axis=1).toarray().ravel()
        values = _row_scaled(matrix, row_max, "maximum")
    elif scheme == "boolean":
        values = matrix.values.copy()
        values.data = (values.data > 0).astype(np.float64)
    else:
        values = matrix.values.copy()
        positive = values.data > 0
        values.data[positive] = 1.0 + np.log10(values.data[positive])

    if scale != 1.0:
        values = values * scale

    values.eliminate_zeros()

    label = scheme if scale == 1.0 else f"{scheme}*{scale:g}"
    logger.debug(f"Weighted {matrix!r} with {label}")
    return matrix.with_values(csr_matrix(values), weight_scheme=label)
