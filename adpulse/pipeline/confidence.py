"""Confidence scoring — rates the richness of one evidence pool."""

from __future__ import annotations

from adpulse.pipeline.models import Confidence, ExtractionBundle

HIGH_THRESHOLD = 10
MEDIUM_THRESHOLD = 5


def score_confidence(bundle: ExtractionBundle) -> Confidence:
    points = bundle.data_points()
    if points > HIGH_THRESHOLD:
        return "high"
    if points > MEDIUM_THRESHOLD:
        return "medium"
    return "low"
