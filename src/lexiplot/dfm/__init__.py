"""
Document-Feature Matrices
=========================

Sparse count matrices built from a ``Corpus``, plus grouping, trimming and
weighting. All functions return new matrices; inputs are never modified.

Usage::

    from lexiplot.dfm import build_dfm, weight_matrix

    dfm = build_dfm(corpus, remove_punct=True, groups="President", min_termfreq=5)
    per100 = weight_matrix(dfm, "prop", scale=100)
"""

from .matrix import FeatureMatrix
from .builder import build_dfm, group_matrix, trim_matrix, select_features, remove_features
from .weighting import weight_matrix, WEIGHT_SCHEMES

__all__ = [
    "FeatureMatrix",
    "build_dfm",
    "group_matrix",
    "trim_matrix",
    "select_features",
    "remove_features",
    "weight_matrix",
    "WEIGHT_SCHEMES",
]
