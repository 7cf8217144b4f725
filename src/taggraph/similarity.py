"""Similarity scoring for entity relation inference.

Provides normalized edit-distance string similarity and a gated,
weighted multi-factor similarity between entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .constants import (
    MEANING_SIMILARITY_WEIGHT,
    PHONETIC_SIMILARITY_WEIGHT,
    SIMILARITY_FACTOR_GATE,
    TEXT_SIMILARITY_WEIGHT,
)

if TYPE_CHECKING:
    from .models import Entity


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance (insert, delete, substitute all cost 1).

    Keeps only two rows of the DP table.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current[j] = previous[j - 1]
            else:
                current[j] = 1 + min(
                    previous[j],      # deletion
                    current[j - 1],   # insertion
                    previous[j - 1],  # substitution
                )
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """Case-insensitive normalized similarity in [0, 1].

    Returns 1.0 when both strings are empty.

    Examples:
        >>> string_similarity("color", "Colour")
        0.8333333333333334
        >>> string_similarity("", "")
        1.0
    """
    a_lower = a.lower()
    b_lower = b.lower()
    max_length = max(len(a_lower), len(b_lower))
    if max_length == 0:
        return 1.0
    return 1.0 - edit_distance(a_lower, b_lower) / max_length


@dataclass(frozen=True)
class SimilarityBreakdown:
    """Per-factor similarity scores and the combined result.

    A factor is None when it was not evaluated (missing on either side)
    or fell at or below the gate.
    """

    score: float
    text: float | None = None
    meaning: float | None = None
    phonetic: float | None = None

    def as_metadata(self) -> dict[str, float]:
        data = {"similarity_score": self.score}
        for name in ("text", "meaning", "phonetic"):
            value = getattr(self, name)
            if value is not None:
                data[f"{name}_similarity"] = value
        return data


class SimilarityScorer:
    """Weighted entity similarity with gated factors.

    Combines:
    - text similarity (weight 3)
    - meaning similarity (weight 2, only if both entities have a meaning)
    - phonetic similarity (weight 1, only if both entities have a phonetic)

    Factors scoring at or below the gate are left out of both numerator and
    denominator, so weak signals never dilute strong ones.
    """

    def __init__(
        self,
        gate: float = SIMILARITY_FACTOR_GATE,
        text_weight: float = TEXT_SIMILARITY_WEIGHT,
        meaning_weight: float = MEANING_SIMILARITY_WEIGHT,
        phonetic_weight: float = PHONETIC_SIMILARITY_WEIGHT,
    ):
        self.gate = gate
        self.text_weight = text_weight
        self.meaning_weight = meaning_weight
        self.phonetic_weight = phonetic_weight

    def score_factors(self, e1: Entity, e2: Entity) -> SimilarityBreakdown:
        """Compute the combined score along with each qualifying factor."""
        total = 0.0
        weights = 0.0

        text = string_similarity(e1.text, e2.text)
        if text > self.gate:
            total += text * self.text_weight
            weights += self.text_weight
        else:
            text = None

        meaning = None
        if e1.meaning is not None and e2.meaning is not None:
            meaning = string_similarity(e1.meaning, e2.meaning)
            if meaning > self.gate:
                total += meaning * self.meaning_weight
                weights += self.meaning_weight
            else:
                meaning = None

        phonetic = None
        if e1.phonetic is not None and e2.phonetic is not None:
            phonetic = string_similarity(e1.phonetic, e2.phonetic)
            if phonetic > self.gate:
                total += phonetic * self.phonetic_weight
                weights += self.phonetic_weight
            else:
                phonetic = None

        score = total / weights if weights > 0 else 0.0
        return SimilarityBreakdown(score=score, text=text, meaning=meaning, phonetic=phonetic)

    def entity_similarity(self, e1: Entity, e2: Entity) -> float:
        """Combined similarity score 0.0-1.0."""
        return self.score_factors(e1, e2).score


_default_scorer = SimilarityScorer()


def entity_similarity(e1: Entity, e2: Entity) -> float:
    """Entity similarity using the default weights and gate."""
    return _default_scorer.entity_similarity(e1, e2)
