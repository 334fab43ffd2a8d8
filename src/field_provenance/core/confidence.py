"""
Confidence Classifier

Discretizes an extraction confidence score into the tiers used uniformly by
badges, overlays and tooltips.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

HIGH_CONFIDENCE_THRESHOLD = 0.9
REVIEW_THRESHOLD = 0.7

LOW_CONFIDENCE_ADVISORY = (
    "This value may need manual verification due to low extraction confidence."
)


class ConfidenceTier(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ConfidenceClassification:
    tier: ConfidenceTier
    color_role: str
    label: str
    rgb: Tuple[int, int, int]
    requires_manual_verification: bool = False

    @property
    def advisory(self) -> Optional[str]:
        return LOW_CONFIDENCE_ADVISORY if self.requires_manual_verification else None

    def rgba(self, alpha: float) -> Tuple[int, int, int, int]:
        return (*self.rgb, int(round(alpha * 255)))


_CLASSIFICATIONS = {
    ConfidenceTier.HIGH: ConfidenceClassification(
        ConfidenceTier.HIGH, "success", "High Confidence", (16, 185, 129)),
    ConfidenceTier.MEDIUM: ConfidenceClassification(
        ConfidenceTier.MEDIUM, "warning", "Needs Review", (245, 158, 11)),
    ConfidenceTier.LOW: ConfidenceClassification(
        ConfidenceTier.LOW, "danger", "Low Confidence", (236, 22, 86),
        requires_manual_verification=True),
    ConfidenceTier.UNKNOWN: ConfidenceClassification(
        ConfidenceTier.UNKNOWN, "info", "Unknown", (70, 159, 232)),
}


def tier_for(confidence: Optional[float]) -> ConfidenceTier:
    # Thresholds are inclusive lower bounds, compared without rounding
    if confidence is None:
        return ConfidenceTier.UNKNOWN
    if confidence >= HIGH_CONFIDENCE_THRESHOLD:
        return ConfidenceTier.HIGH
    if confidence >= REVIEW_THRESHOLD:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def classify(confidence: Optional[float] = None) -> ConfidenceClassification:
    """Map a confidence in [0, 1] (or None) to its tier, colour role and label."""
    return _CLASSIFICATIONS[tier_for(confidence)]


def format_confidence(confidence: Optional[float]) -> Optional[str]:
    """Rounded percentage, e.g. ``"95%"``."""
    if confidence is None:
        return None
    return f"{math.floor(confidence * 100 + 0.5)}%"


def badge_text(confidence: Optional[float]) -> str:
    """Tooltip badge text, e.g. ``"95% - High Confidence"``."""
    classification = classify(confidence)
    percent = format_confidence(confidence)
    if percent is None:
        return classification.label
    return f"{percent} - {classification.label}"
