"""
Statistics Package
==================

Frequency and keyness statistics over ``FeatureMatrix`` objects.

    compute_frequency
        Per-feature frequency, relative frequency, rank and document
        frequency, optionally within groups.

    compute_keyness
        Signed association of each feature with a target row against a
        reference row or the rest of the matrix.
"""

from .frequency import FrequencyRecord, compute_frequency, frequency_table
from .keyness import KeynessRecord, compute_keyness, KEYNESS_MEASURES

__all__ = [
    "FrequencyRecord",
    "compute_frequency",
    "frequency_table",
    "KeynessRecord",
    "compute_keyness",
    "KEYNESS_MEASURES",
]
