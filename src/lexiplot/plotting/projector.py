"""
Plot Data Projector
===================

Maps statistics and model output onto plain coordinate tables that an
external renderer can draw. Nothing here renders.

Tables
------
    xray        one row per keyword occurrence:
                (document, document_index, keyword, position, ntokens)
    scale       one row per document or feature estimate:
                (label, position, standard_error, lower, upper, highlight,
                group, y)
    frequency   one row per frequency record:
                (feature, group, rank, frequency)
    keyness     top target and reference features:
                (feature, statistic, direction)
    wordcloud   one row per word: (feature, group, weight)

Dispersion x-axis
-----------------
    ``absolute`` places an occurrence at its 1-based token index,
    ``relative`` at index / document length. When no scale is requested
    a single document uses ``absolute`` and several documents use
    ``relative``, so that texts of different length share one axis.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from fnmatch import fnmatchcase
from typing import Any, Iterable, Optional, Sequence

import numpy as np

from ..errors import EmptyResultError, UnknownFeatureError
from ..stats.frequency import FrequencyRecord
from ..stats.keyness import KeynessRecord
from .sources import DISPERSION_SCALES, DispersionQuery, PlotSource, ScalingFit

logger = logging.getLogger(__name__)

# Two-sided 95% normal interval
Z_95 = 1.959963984540054


# ---------------------------------------------------------------------------
# Row and table types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DispersionPoint:
    document: str
    document_index: int
    keyword: str
    position: float
    ntokens: int


@dataclass(frozen=True)
class ScalePoint:
    label: str
    position: float
    standard_error: Optional[float]
    lower: Optional[float]
    upper: Optional[float]
    highlight: bool
    group: Optional[str]
    y: Optional[float]


@dataclass(frozen=True)
class FrequencyPoint:
    feature: str
    group: Optional[str]
    rank: int
    frequency: float


@dataclass(frozen=True)
class KeynessBar:
    feature: str
    statistic: float
    direction: str


@dataclass(frozen=True)
class WordcloudEntry:
    feature: str
    group: Optional[str]
    weight: float


@dataclass(frozen=True)
class PlotTable:
    """Coordinates for one plot, with plot-level settings in ``meta``."""
    kind: str
    rows: tuple
    meta: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def to_records(self) -> list[dict[str, Any]]:
        return [asdict(r) for r in self.rows]

    def column(self, name: str) -> list[Any]:
        return [getattr(r, name) for r in self.rows]


# ---------------------------------------------------------------------------
# Dispersion ("x-ray")
# ---------------------------------------------------------------------------

def default_dispersion_scale(n_documents: int) -> str:
    return "absolute" if n_documents == 1 else "relative"


def project_dispersion(query: DispersionQuery, scale: Optional[str] = None) -> PlotTable:
    """
    Locate every keyword occurrence.

    ``scale`` overrides ``query.scale``; when both are unset the default
    depends on the number of documents.

    Raises
    ------
    UnknownFeatureError
        If any keyword matches no token in any document.
    """
    scale = scale or query.scale or default_dispersion_scale(len(query.tokens))
    if scale not in DISPERSION_SCALES:
        raise ValueError(f"Unknown scale: {scale}. Use one of {DISPERSION_SCALES}.")

    patterns = [kw.lower() if query.case_insensitive else kw for kw in query.keywords]
    hits = {kw: 0 for kw in query.keywords}
    rows: list[DispersionPoint] = []

    for doc_index, (docname, tokens) in enumerate(query.tokens.items(), 1):
        ntok = len(tokens)
        folded = [t.lower() for t in tokens] if query.case_insensitive else tokens
        for keyword, pattern in zip(query.keywords, patterns):
            for i, tok in enumerate(folded, 1):
                if fnmatchcase(tok, pattern):
                    hits[keyword] += 1
                    rows.append(DispersionPoint(
                        document=docname,
                        document_index=doc_index,
                        keyword=keyword,
                        position=float(i) if scale == "absolute" else i / ntok,
                        ntokens=ntok,
                    ))

    missing = [kw for kw, count in hits.items() if count == 0]
    if missing:
        raise UnknownFeatureError(f"Keyword(s) not found in any document: {missing}")

    logger.debug(f"Dispersion: {len(rows)} occurrences of {list(query.keywords)} ({scale})")
    return PlotTable(
        kind="xray",
        rows=tuple(rows),
        meta={
            "scale": scale,
            "documents": list(query.tokens),
            "keywords": list(query.keywords),
            "ntokens": {d: len(t) for d, t in query.tokens.items()},
        },
    )


# ---------------------------------------------------------------------------
# Scaling-model positions
# ---------------------------------------------------------------------------

def project_scale(
    fit: ScalingFit,
    highlighted: Optional[Iterable[str]] = None,
    sort: Optional[bool] = None,
) -> PlotTable:
    """
    Place each document or feature on the estimated scale.

    Documents are sorted by position by default and ``y`` is their row in
    that order. For features ``y`` is the fixed effect when the fit has one.
    ``lower``/``upper`` give the 95% interval when standard errors exist.
    """
    highlight_set = set(highlighted or ())
    unknown = highlight_set.difference(fit.labels)
    if unknown:
        logger.warning(f"Highlighted labels not in the fit: {sorted(unknown)}")

    if sort is None:
        sort = fit.level == "documents"
    order = np.argsort(fit.positions, kind="stable") if sort else np.arange(len(fit.labels))

    rows = []
    for row_no, i in enumerate(order, 1):
        se = None if fit.standard_errors is None else float(fit.standard_errors[i])
        pos = float(fit.positions[i])
        if fit.level == "documents":
            y: Optional[float] = float(row_no)
        elif fit.fixed_effects is not None:
            y = float(fit.fixed_effects[i])
        else:
            y = None
        rows.append(ScalePoint(
            label=fit.labels[i],
            position=pos,
            standard_error=se,
            lower=None if se is None else pos - Z_95 * se,
            upper=None if se is None else pos + Z_95 * se,
            highlight=fit.labels[i] in highlight_set,
            group=None if fit.groups is None else fit.groups[i],
            y=y,
        ))

    return PlotTable(kind="scale", rows=tuple(rows), meta={"level": fit.level, "sorted": sort})


# ---------------------------------------------------------------------------
# Frequency, keyness, wordcloud
# ---------------------------------------------------------------------------

def project_frequency(records: Sequence[FrequencyRecord], n: Optional[int] = None) -> PlotTable:
    """Rank/frequency coordinates, optionally cut to the top ``n`` per group."""
    rows = tuple(
        FrequencyPoint(feature=r.feature, group=r.group, rank=r.rank, frequency=r.frequency)
        for r in records
        if n is None or r.rank <= n
    )
    if not rows:
        raise EmptyResultError("No frequency records to plot")
    groups = list(dict.fromkeys(r.group for r in rows))
    return PlotTable(kind="frequency", rows=rows, meta={"groups": groups})


def project_keyness(
    records: Sequence[KeynessRecord],
    n: int = 20,
    show_reference: bool = True,
) -> PlotTable:
    """
    Bars for the ``n`` strongest target features and, optionally, the ``n``
    strongest reference features (most negative statistics).
    """
    if n < 1:
        raise ValueError(f"n must be a positive integer, got {n}")

    target = sorted(
        (r for r in records if r.direction == "target"), key=lambda r: -r.statistic
    )[:n]
    rows = [KeynessBar(r.feature, r.statistic, r.direction) for r in target]
    if show_reference:
        reference = sorted(
            (r for r in records if r.direction == "reference"), key=lambda r: r.statistic
        )[:n]
        # Reference bars run from the weakest to the strongest, below the target bars
        rows.extend(KeynessBar(r.feature, r.statistic, r.direction) for r in reversed(reference))

    if not rows:
        raise EmptyResultError("No keyness records to plot")
    return PlotTable(kind="keyness", rows=tuple(rows), meta={"n": n, "show_reference": show_reference})


def project_wordcloud(
    records: Sequence[FrequencyRecord],
    max_words: int = 100,
    min_count: float = 1,
    comparison: bool = False,
) -> PlotTable:
    """
    Word weights for a wordcloud.

    With ``comparison=True`` each group keeps its own words, for a
    comparison cloud; otherwise frequencies are summed across groups.
    """
    if comparison:
        if not any(r.group is not None for r in records):
            raise ValueError("A comparison wordcloud needs grouped frequency records")
        weights: dict[tuple[Optional[str], str], float] = {}
        for r in records:
            weights[(r.group, r.feature)] = weights.get((r.group, r.feature), 0.0) + r.frequency
    else:
        weights = {}
        for r in records:
            weights[(None, r.feature)] = weights.get((None, r.feature), 0.0) + r.frequency

    per_group: dict[Optional[str], list[WordcloudEntry]] = {}
    for (group, feature), w in weights.items():
        if w >= min_count:
            per_group.setdefault(group, []).append(WordcloudEntry(feature, group, w))

    rows: list[WordcloudEntry] = []
    for entries in per_group.values():
        # sorted() is stable, so equal weights keep first-seen order
        rows.extend(sorted(entries, key=lambda e: -e.weight)[:max_words])

    if not rows:
        raise EmptyResultError(f"No word reaches min_count={min_count}")
    return PlotTable(
        kind="wordcloud",
        rows=tuple(rows),
        meta={"comparison": comparison, "groups": list(per_group)},
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def project(source: PlotSource, plot: Optional[str] = None, **options: Any) -> PlotTable:
    """
    Build the coordinate table for a plot source.

    The table type follows what the source exposes: occurrences give an
    x-ray table, latent positions a scale table, statistics a keyness table
    and ranks a frequency table. Frequency sources also accept
    ``plot="wordcloud"``. Remaining keyword arguments go to the matching
    ``project_*`` function.
    """
    if source.has_occurrences:
        table = project_dispersion(source.payload, **options)
    elif source.has_positions:
        table = project_scale(source.payload, **options)
    elif source.has_statistics:
        table = project_keyness(source.payload, **options)
    elif source.has_ranks:
        if plot == "wordcloud":
            table = project_wordcloud(source.payload, **options)
        else:
            table = project_frequency(source.payload, **options)
    else:
        raise ValueError(f"Nothing to project for source kind {source.kind}")

    if plot is not None and plot != table.kind:
        raise ValueError(f"A {source.kind.value} source cannot produce a {plot!r} plot")

    logger.debug(f"Projected {source.kind.value} source to {len(table)} {table.kind} rows")
    return table
