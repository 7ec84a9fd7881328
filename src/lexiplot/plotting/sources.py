"""
Plot Sources
============

Inputs to the plot data projector, expressed as one tagged type with a
constructor per source kind:

    PlotSource.from_frequency(records)    frequency records
    PlotSource.from_keyness(records)      keyness records
    PlotSource.from_scaling(fit)          fitted scaling-model coefficients
    PlotSource.from_dispersion(query)     keyword occurrences in token streams

The projector never branches on the tag directly. It asks what a source can
offer (``has_ranks``, ``has_statistics``, ``has_positions``,
``has_occurrences``, ``has_groups``, ``has_standard_errors``) and builds the
matching coordinate table.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from ..corpus.loader import Corpus
from ..stats.frequency import FrequencyRecord
from ..stats.keyness import KeynessRecord

DISPERSION_SCALES = ("absolute", "relative")
SCALING_LEVELS = ("documents", "features")


class SourceKind(Enum):
    """Tag of a plot source."""
    FREQUENCY = "frequency"
    KEYNESS = "keyness"
    SCALING = "scaling"
    DISPERSION = "dispersion"


@dataclass(frozen=True, eq=False)
class ScalingFit:
    """
    Coefficients of a fitted one-dimensional scaling model.

    For document-level fits (Wordfish theta, Wordscores text scores,
    first CA dimension) ``positions`` are the document estimates. For
    feature-level fits they are the feature weights (Wordfish beta) and
    ``fixed_effects`` may carry the feature fixed effects (Wordfish psi).
    """
    labels: tuple[str, ...]
    positions: NDArray
    standard_errors: Optional[NDArray] = None
    level: str = "documents"
    groups: Optional[tuple[str, ...]] = None
    fixed_effects: Optional[NDArray] = None

    def __post_init__(self) -> None:
        labels = tuple(str(x) for x in self.labels)
        positions = np.asarray(self.positions, dtype=np.float64).ravel()
        k = len(labels)

        if self.level not in SCALING_LEVELS:
            raise ValueError(f"Unknown scaling level: {self.level}. Use one of {SCALING_LEVELS}.")
        if positions.shape[0] != k:
            raise ValueError(f"Got {positions.shape[0]} positions for {k} labels")

        se = None
        if self.standard_errors is not None:
            se = np.asarray(self.standard_errors, dtype=np.float64).ravel()
            if se.shape[0] != k:
                raise ValueError(f"Got {se.shape[0]} standard errors for {k} labels")

        fe = None
        if self.fixed_effects is not None:
            fe = np.asarray(self.fixed_effects, dtype=np.float64).ravel()
            if fe.shape[0] != k:
                raise ValueError(f"Got {fe.shape[0]} fixed effects for {k} labels")

        groups = None
        if self.groups is not None:
            groups = tuple(str(g) for g in self.groups)
            if len(groups) != k:
                raise ValueError(f"Got {len(groups)} group labels for {k} labels")

        object.__setattr__(self, "labels", labels)
        object.__setattr__(self, "positions", positions)
        object.__setattr__(self, "standard_errors", se)
        object.__setattr__(self, "fixed_effects", fe)
        object.__setattr__(self, "groups", groups)


@dataclass(frozen=True)
class DispersionQuery:
    """
    Keywords to locate in ordered token streams.

    Keywords may contain glob wildcards (``american*``); repeats are dropped.
    ``scale=None`` leaves the x-axis choice to the projector's default.
    """
    tokens: Mapping[str, Sequence[str]]
    keywords: tuple[str, ...]
    scale: Optional[str] = None
    case_insensitive: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.keywords, str):
            object.__setattr__(self, "keywords", (self.keywords,))
        else:
            object.__setattr__(self, "keywords", tuple(dict.fromkeys(self.keywords)))
        if not self.keywords:
            raise ValueError("At least one keyword is required")
        if self.scale is not None and self.scale not in DISPERSION_SCALES:
            raise ValueError(f"Unknown scale: {self.scale}. Use one of {DISPERSION_SCALES}.")
        object.__setattr__(
            self, "tokens", MappingProxyType({k: tuple(v) for k, v in self.tokens.items()})
        )

    @classmethod
    def from_corpus(
        cls,
        corpus: Corpus,
        keywords: Sequence[str],
        scale: Optional[str] = None,
        remove_punct: bool = False,
        case_insensitive: bool = True,
    ) -> DispersionQuery:
        """Tokenize a corpus, keeping original case for case-sensitive queries."""
        tokens = corpus.tokens(lowercase=case_insensitive, remove_punct=remove_punct)
        return cls(
            tokens=tokens,
            keywords=tuple(keywords),
            scale=scale,
            case_insensitive=case_insensitive,
        )


@dataclass(frozen=True)
class PlotSource:
    """Tagged plot input. Build with the ``from_*`` constructors."""
    kind: SourceKind
    payload: Any

    @classmethod
    def from_frequency(cls, records: Sequence[FrequencyRecord]) -> PlotSource:
        return cls(SourceKind.FREQUENCY, tuple(records))

    @classmethod
    def from_keyness(cls, records: Sequence[KeynessRecord]) -> PlotSource:
        return cls(SourceKind.KEYNESS, tuple(records))

    @classmethod
    def from_scaling(cls, fit: ScalingFit) -> PlotSource:
        return cls(SourceKind.SCALING, fit)

    @classmethod
    def from_dispersion(cls, query: DispersionQuery) -> PlotSource:
        return cls(SourceKind.DISPERSION, query)

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    @property
    def has_ranks(self) -> bool:
        return self.kind is SourceKind.FREQUENCY

    @property
    def has_statistics(self) -> bool:
        return self.kind is SourceKind.KEYNESS

    @property
    def has_positions(self) -> bool:
        """Exposes estimated positions on a latent scale."""
        return self.kind is SourceKind.SCALING

    @property
    def has_occurrences(self) -> bool:
        """Exposes token positions of keyword hits."""
        return self.kind is SourceKind.DISPERSION

    @property
    def has_standard_errors(self) -> bool:
        return self.kind is SourceKind.SCALING and self.payload.standard_errors is not None

    @property
    def has_groups(self) -> bool:
        if self.kind is SourceKind.FREQUENCY:
            return any(r.group is not None for r in self.payload)
        if self.kind is SourceKind.SCALING:
            return self.payload.groups is not None
        if self.kind is SourceKind.DISPERSION:
            return len(self.payload.tokens) > 1
        return False
