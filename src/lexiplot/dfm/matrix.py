"""
Feature Matrix
==============

Sparse document-by-feature table backed by ``scipy.sparse.csr_matrix``.

Invariants:
    - row labels (``docnames``) are unique and keep insertion/grouping order
    - column labels (``features``) are unique and keep first-seen order
    - cells are non-negative
    - labels never change after construction; weighting produces a new
      matrix with the same labels and rescaled cells
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_matrix

from ..errors import InvalidGroupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class FeatureMatrix:
    """Document-feature matrix with per-row metadata."""
    values: csr_matrix
    docnames: tuple[str, ...]
    features: tuple[str, ...]
    docvars: tuple[Mapping[str, Any], ...] = ()
    weight_scheme: str = "count"
    _row_index: dict[str, int] = field(init=False, repr=False, compare=False)
    _col_index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        values = csr_matrix(self.values, dtype=np.float64)
        docnames = tuple(str(d) for d in self.docnames)
        features = tuple(str(f) for f in self.features)

        if values.shape != (len(docnames), len(features)):
            raise ValueError(
                f"Matrix shape {values.shape} does not match "
                f"{len(docnames)} rows x {len(features)} features"
            )
        if len(set(docnames)) != len(docnames):
            raise ValueError("Row labels must be unique")
        if len(set(features)) != len(features):
            raise ValueError("Feature labels must be unique")
        if values.nnz and values.data.min() < 0:
            raise ValueError("Feature matrix cells must be non-negative")

        docvars = tuple(MappingProxyType(dict(v)) for v in self.docvars) or tuple(
            MappingProxyType({}) for _ in docnames
        )
        if len(docvars) != len(docnames):
            raise ValueError("docvars must have one entry per row")

        object.__setattr__(self, "values", values)
        object.__setattr__(self, "docnames", docnames)
        object.__setattr__(self, "features", features)
        object.__setattr__(self, "docvars", docvars)
        object.__setattr__(self, "_row_index", {d: i for i, d in enumerate(docnames)})
        object.__setattr__(self, "_col_index", {f: j for j, f in enumerate(features)})

    @classmethod
    def from_dense(
        cls,
        values: Sequence[Sequence[float]] | NDArray,
        docnames: Sequence[str],
        features: Sequence[str],
        docvars: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> FeatureMatrix:
        """Build a matrix from a dense 2-D array (rows = documents)."""
        arr = np.asarray(values, dtype=np.float64)
        if arr.ndim == 1:
            arr = arr.reshape(1, -1)
        return cls(
            values=csr_matrix(arr),
            docnames=tuple(docnames),
            features=tuple(features),
            docvars=tuple(docvars or ()),
        )

    # ------------------------------------------------------------------
    # Shape and lookups
    # ------------------------------------------------------------------

    @property
    def shape(self) -> tuple[int, int]:
        return self.values.shape

    @property
    def ndoc(self) -> int:
        return self.values.shape[0]

    @property
    def nfeat(self) -> int:
        return self.values.shape[1]

    def row_index(self, label: str) -> int:
        try:
            return self._row_index[label]
        except KeyError:
            raise InvalidGroupError(
                f"Row {label!r} not found; available rows: {list(self.docnames)}"
            ) from None

    def feature_index(self, feature: str) -> Optional[int]:
        return self._col_index.get(feature)

    def docvar(self, name: str) -> list[Any]:
        """Per-row values of a metadata variable."""
        missing = [d for d, v in zip(self.docnames, self.docvars) if name not in v]
        if missing:
            raise InvalidGroupError(
                f"Metadata variable {name!r} missing for row(s) {missing[:3]}"
            )
        return [v[name] for v in self.docvars]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def row_sums(self) -> NDArray:
        return np.asarray(self.values.sum(axis=1)).ravel()

    def column_sums(self) -> NDArray:
        return np.asarray(self.values.sum(axis=0)).ravel()

    def docfreq(self) -> NDArray:
        """Number of rows in which each feature has a non-zero cell."""
        return np.asarray((self.values > 0).sum(axis=0)).ravel().astype(np.int64)

    def to_dense(self) -> NDArray:
        return self.values.toarray()

    def row(self, label: str) -> dict[str, float]:
        """Non-zero cells of one row as ``feature -> value``."""
        r = self.values[self.row_index(label)]
        return {self.features[j]: float(v) for j, v in zip(r.indices, r.data)}

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {d: self.row(d) for d in self.docnames}

    def with_values(self, values: csr_matrix, weight_scheme: Optional[str] = None) -> FeatureMatrix:
        """Copy with new cell values and the same labels."""
        return FeatureMatrix(
            values=values,
            docnames=self.docnames,
            features=self.features,
            docvars=self.docvars,
            weight_scheme=weight_scheme or self.weight_scheme,
        )

    def __repr__(self) -> str:
        return (
            f"FeatureMatrix({self.ndoc} rows x {self.nfeat} features, "
            f"weight={self.weight_scheme!r})"
        )
