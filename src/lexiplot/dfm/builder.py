"""
Feature Matrix Builder
======================

Turns a corpus into a ``FeatureMatrix``:

    1. tokenize every document (lowercased by default)
    2. drop stopwords and punctuation tokens
    3. count tokens per document, columns in first-seen order
    4. sum documents sharing a ``groups`` value into one row
    5. trim columns below ``min_termfreq`` / ``min_docfreq``

Trimming runs after grouping, so ``min_docfreq`` counts grouped rows.
A build that leaves no rows or no features raises ``EmptyResultError``.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence, Union

import numpy as np
from scipy.sparse import csr_matrix

from ..corpus.loader import Corpus, StopwordSpec
from ..errors import EmptyResultError, InvalidGroupError
from .matrix import FeatureMatrix

logger = logging.getLogger(__name__)

GroupSpec = Union[str, Sequence[Any]]


def build_dfm(
    corpus: Corpus,
    remove_stopwords: StopwordSpec = False,
    remove_punct: bool = False,
    lowercase: bool = True,
    groups: Optional[GroupSpec] = None,
    min_termfreq: Optional[float] = None,
    min_docfreq: Optional[int] = None,
) -> FeatureMatrix:
    """
    Count features per document.

    Parameters
    ----------
    corpus : Corpus
        Documents to count. Use ``Corpus.subset`` beforehand to filter.
    remove_stopwords : bool or collection of str
        ``True`` for the NLTK English list, or an explicit word list.
    remove_punct : bool
        Drop tokens without any letter or digit.
    lowercase : bool
        Fold case before counting.
    groups : str or sequence, optional
        Metadata variable (or one label per document) whose rows are summed.
    min_termfreq, min_docfreq : optional
        Trimming thresholds, applied after grouping.

    Returns
    -------
    FeatureMatrix
    """
    if len(corpus) == 0:
        raise EmptyResultError("Cannot build a feature matrix from an empty corpus")

    tokens = corpus.tokens(
        lowercase=lowercase,
        remove_punct=remove_punct,
        remove_stopwords=remove_stopwords,
    )

    vocab: dict[str, int] = {}
    indptr = [0]
    indices: list[int] = []
    for toks in tokens.values():
        for tok in toks:
            indices.append(vocab.setdefault(tok, len(vocab)))
        indptr.append(len(indices))

    if not vocab:
        raise EmptyResultError("No features left after removing stopwords and punctuation")

    data = np.ones(len(indices), dtype=np.float64)
    # Duplicate (row, col) entries are summed into counts
    values = csr_matrix(
        (data, np.asarray(indices, dtype=np.int64), np.asarray(indptr, dtype=np.int64)),
        shape=(len(tokens), len(vocab)),
    )
    values.sum_duplicates()

    matrix = FeatureMatrix(
        values=values,
        docnames=tuple(tokens),
        features=tuple(vocab),
        docvars=tuple(d.meta for d in corpus),
    )
    logger.debug(f"Counted {matrix.nfeat} features in {matrix.ndoc} documents")

    if groups is not None:
        matrix = group_matrix(matrix, groups)

    if min_termfreq is not None or min_docfreq is not None:
        matrix = trim_matrix(matrix, min_termfreq=min_termfreq, min_docfreq=min_docfreq)

    logger.info(f"Built {matrix!r}")
    return matrix


def resolve_group_labels(matrix: FeatureMatrix, groups: GroupSpec) -> list[Any]:
    """One group label per row, from a metadata variable or an explicit sequence."""
    if isinstance(groups, str):
        return matrix.docvar(groups)
    labels = list(groups)
    if len(labels) != matrix.ndoc:
        raise InvalidGroupError(
            f"Got {len(labels)} group labels for {matrix.ndoc} rows"
        )
    return labels


def group_matrix(matrix: FeatureMatrix, groups: GroupSpec) -> FeatureMatrix:
    """
    Sum rows that share a group value.

    Groups appear in order of first appearance. A grouped row keeps only the
    metadata values that are identical across all of its members.
    """
    labels = resolve_group_labels(matrix, groups)

    order: dict[Any, int] = {}
    for lab in labels:
        order.setdefault(lab, len(order))

    rows = np.fromiter((order[lab] for lab in labels), dtype=np.int64, count=len(labels))
    cols = np.arange(len(labels), dtype=np.int64)
    membership = csr_matrix(
        (np.ones(len(labels)), (rows, cols)),
        shape=(len(order), len(labels)),
    )
    values = membership @ matrix.values

    docvars = []
    for lab in order:
        members = [v for v, g in zip(matrix.docvars, labels) if g == lab]
        shared = {
            k: val for k, val in members[0].items()
            if all(k in m and m[k] == val for m in members[1:])
        }
        docvars.append(shared)

    logger.debug(f"Grouped {matrix.ndoc} rows into {len(order)}")
    return FeatureMatrix(
        values=csr_matrix(values),
        docnames=tuple(str(lab) for lab in order),
        features=matrix.features,
        docvars=tuple(docvars),
        weight_scheme=matrix.weight_scheme,
    )


def _select_columns(matrix: FeatureMatrix, keep: np.ndarray) -> FeatureMatrix:
    idx = np.flatnonzero(keep)
    return FeatureMatrix(
        values=matrix.values[:, idx],
        docnames=matrix.docnames,
        features=tuple(matrix.features[j] for j in idx),
        docvars=matrix.docvars,
        weight_scheme=matrix.weight_scheme,
    )


def trim_matrix(
    matrix: FeatureMatrix,
    min_termfreq: Optional[float] = None,
    min_docfreq: Optional[int] = None,
) -> FeatureMatrix:
    """Remove features below the aggregate-count or document-count thresholds."""
    keep = np.ones(matrix.nfeat, dtype=bool)
    if min_termfreq is not None:
        keep &= matrix.column_sums() >= min_termfreq
    if min_docfreq is not None:
        keep &= matrix.docfreq() >= min_docfreq

    if not keep.any():
        raise EmptyResultError(
            f"Trimming (min_termfreq={min_termfreq}, min_docfreq={min_docfreq}) "
            f"removed all {matrix.nfeat} features"
        )

    removed = int((~keep).sum())
    if removed:
        logger.info(f"Trimming removed {removed} of {matrix.nfeat} features")
    return _select_columns(matrix, keep)


def select_features(matrix: FeatureMatrix, features: Iterable[str]) -> FeatureMatrix:
    """Keep only the listed features, in the matrix's column order."""
    wanted = set(features)
    keep = np.array([f in wanted for f in matrix.features], dtype=bool)
    if not keep.any():
        raise EmptyResultError("None of the requested features are in the matrix")
    return _select_columns(matrix, keep)


def remove_features(matrix: FeatureMatrix, features: Iterable[str]) -> FeatureMatrix:
    """Drop the listed features."""
    unwanted = set(features)
    keep = np.array([f not in unwanted for f in matrix.features], dtype=bool)
    if not keep.any():
        raise EmptyResultError("Removing the requested features leaves an empty matrix")
    return _select_columns(matrix, keep)
