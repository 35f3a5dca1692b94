"""
Similarity Matcher

Nearest-neighbour classification over a flat corpus of reference embeddings.

Scoring
-------
- Cosine distance (``1 - cosine similarity``); embedding magnitude carries no
  meaning for the pooled activations, only direction does.
- A stored vector whose dimension differs from the query is disqualified with
  ``distance = +inf`` without aborting the scan.
- A zero-magnitude vector yields ``NaN`` distance, ranked and decided as ``1``.

Decision
--------
Two thresholds split confidence into three tiers:

    confidence <  report_threshold                  -> Not Determined, 0
    report_threshold <= confidence < match_threshold -> Not Determined, confidence
    confidence >= match_threshold                   -> best label, confidence

Ties between equal distances are broken by label, then by insertion order.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Sequence

import numpy as np

from ..features.models import (
    NOT_DETERMINED,
    ClassificationResult,
    FeatureRecord,
    RankedCandidate,
)

logger = logging.getLogger("imgmatch.matcher")


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Return ``1 - cos(a, b)``.

    ``+inf`` when dimensions differ, ``NaN`` when either vector has zero
    magnitude.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    if va.shape != vb.shape:
        return math.inf

    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return math.nan

    return float(1.0 - np.dot(va, vb) / denom)


def _rank_distance(distance: float) -> float:
    return 1.0 if math.isnan(distance) else distance


class SimilarityMatcher:
    """
    Scores a query against every record and applies the thresholded decision.

    Stateless apart from its thresholds; safe to share across requests.
    """

    def __init__(
        self,
        report_threshold: float = 50.0,
        match_threshold: float = 60.0,
    ) -> None:
        if report_threshold > match_threshold:
            raise ValueError(
                "report_threshold must not exceed match_threshold "
                f"({report_threshold} > {match_threshold})"
            )
        self.report_threshold = report_threshold
        self.match_threshold = match_threshold

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def score(
        self,
        query: Sequence[float],
        records: Iterable[FeatureRecord],
    ) -> List[RankedCandidate]:
        """
        Compute the cosine distance of every record to the query.

        Candidates are returned in input order; see ``rank`` for ordering.
        """
        records = list(records)
        if not records:
            return []

        q = np.asarray(query, dtype=np.float64)
        distances = [math.inf] * len(records)

        comparable = [i for i, r in enumerate(records) if r.dimension == q.size]
        if len(comparable) < len(records):
            logger.debug(
                "Disqualified %d of %d records on dimension mismatch (query dim=%d)",
                len(records) - len(comparable),
                len(records),
                q.size,
            )

        if comparable:
            matrix = np.asarray(
                [records[i].vector for i in comparable], dtype=np.float64
            )
            norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)

            with np.errstate(divide="ignore", invalid="ignore"):
                sims = (matrix @ q) / norms

            for i, sim in zip(comparable, sims):
                distances[i] = float(1.0 - sim)

        return [
            RankedCandidate(record=record, distance=distance)
            for record, distance in zip(records, distances)
        ]

    def rank(self, candidates: Iterable[RankedCandidate]) -> List[RankedCandidate]:
        """
        Sort candidates by ascending distance.

        The sort is stable, so among equal (distance, label) pairs the input
        order, i.e. the store's insertion order, is kept.
        """
        return sorted(
            candidates,
            key=lambda c: (_rank_distance(c.distance), c.record.label),
        )

    def confidence(self, distance: float) -> float:
        """Map a cosine distance to a confidence percentage in [0, 100]."""
        distance = _rank_distance(distance)
        value = (1.0 - distance) * 100.0
        return max(0.0, min(100.0, value))

    def decide(self, ranked: Sequence[RankedCandidate]) -> ClassificationResult:
        """Apply the two-tier threshold to the best-ranked candidate."""
        if not ranked:
            return ClassificationResult(product_name=NOT_DETERMINED, confidence=0.0)

        best = ranked[0]
        confidence = self.confidence(best.distance)

        if confidence < self.report_threshold:
            return ClassificationResult(product_name=NOT_DETERMINED, confidence=0.0)

        if confidence < self.match_threshold:
            return ClassificationResult(
                product_name=NOT_DETERMINED,
                confidence=confidence,
            )

        return ClassificationResult(
            product_name=best.record.label,
            confidence=confidence,
        )

    def match(
        self,
        query: Sequence[float],
        records: Iterable[FeatureRecord],
    ) -> ClassificationResult:
        """Score, rank and decide in one call."""
        ranked = self.rank(self.score(query, records))
        result = self.decide(ranked)

        if ranked:
            logger.debug(
                "Best candidate %r at distance %.6f -> %s (%.2f)",
                ranked[0].record.label,
                ranked[0].distance,
                result.product_name,
                result.confidence,
            )
        return result
