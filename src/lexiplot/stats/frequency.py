"""
Feature Frequency Statistics
============================

Aggregate frequency, relative frequency, rank and document frequency per
feature, optionally within groups of rows.

Ranking is by descending frequency; ties keep the matrix's first-seen
column order, so ranks within a group are always ``1..k`` with no gaps or
shared ranks. Features with zero frequency in a group are left out of that
group's records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..dfm.builder import GroupSpec, resolve_group_labels
from ..dfm.matrix import FeatureMatrix
from ..errors import EmptyResultError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrequencyRecord:
    """Statistics for one feature within one group (``group=None`` when ungrouped)."""
    feature: str
    group: Optional[str]
    frequency: float
    rank: int
    docfreq: int
    relative_frequency: float


def compute_frequency(
    matrix: FeatureMatrix,
    n: Optional[int] = None,
    groups: Optional[GroupSpec] = None,
) -> list[FrequencyRecord]:
    """
    Rank features by frequency.

    Parameters
    ----------
    matrix : FeatureMatrix
        Counts or weights; cell values are summed as they are.
    n : int, optional
        Keep the top ``n`` records per group. All records when unset.
    groups : str or sequence, optional
        Metadata variable or per-row labels to compute statistics within.

    Returns
    -------
    list[FrequencyRecord]
        Records grouped in first-appearance order of the groups, each group
        sorted by rank.
    """
    if n is not None and n < 1:
        raise ValueError(f"n must be a positive integer, got {n}")

    if groups is None:
        partitions: dict[Optional[str], list[int]] = {None: list(range(matrix.ndoc))}
    else:
        partitions = {}
        for i, lab in enumerate(resolve_group_labels(matrix, groups)):
            partitions.setdefault(str(lab), []).append(i)

    records: list[FrequencyRecord] = []
    for group, rows in partitions.items():
        block = matrix.values[rows]
        freq = np.asarray(block.sum(axis=0)).ravel()
        docfreq = np.asarray((block > 0).sum(axis=0)).ravel()
        total = float(freq.sum())

        present = np.flatnonzero(freq > 0)
        # Stable sort on -freq keeps column order among ties
        ranked = present[np.argsort(-freq[present], kind="stable")]
        if n is not None:
            ranked = ranked[:n]

        for rank, j in enumerate(ranked, 1):
            records.append(FrequencyRecord(
                feature=matrix.features[j],
                group=group,
                frequency=float(freq[j]),
                rank=rank,
                docfreq=int(docfreq[j]),
                relative_frequency=float(freq[j]) / total,
            ))

    if not records:
        raise EmptyResultError("No feature has a non-zero frequency")

    logger.debug(f"Computed {len(records)} frequency records over {len(partitions)} group(s)")
    return records


def frequency_table(records: list[FrequencyRecord]) -> dict[Optional[str], list[FrequencyRecord]]:
    """Records keyed by group, preserving order."""
    table: dict[Optional[str], list[FrequencyRecord]] = {}
    for rec in records:
        table.setdefault(rec.group, []).append(rec)
    return table
