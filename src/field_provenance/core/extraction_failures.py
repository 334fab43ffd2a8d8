"""
Extraction Failures

Groups the pages the extraction pipeline skipped by the kind of problem, so the
review panel can show them next to the successfully extracted forms.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping

from .models import SkippedForm

logger = logging.getLogger(__name__)


class FailureCategory(Enum):
    BLANK = "blank"
    QUALITY = "quality"
    UNSUPPORTED = "unsupported"
    PARTIAL = "partial"
    OTHER = "other"


CATEGORY_LABELS = {
    FailureCategory.BLANK: "Blank/Empty Page",
    FailureCategory.QUALITY: "Image Quality Issue",
    FailureCategory.UNSUPPORTED: "Unsupported Form",
    FailureCategory.PARTIAL: "Partial Extraction",
    FailureCategory.OTHER: "Extraction Failed",
}

# Checked in order; the first category with a matching keyword wins
_KEYWORDS = (
    (FailureCategory.BLANK, ("blank", "empty")),
    (FailureCategory.QUALITY, ("quality", "illegible", "blurry")),
    (FailureCategory.UNSUPPORTED, ("unsupported", "unrecognized", "unknown")),
    (FailureCategory.PARTIAL, ("partial", "incomplete", "obscured")),
)


def categorize_reason(reason: str) -> FailureCategory:
    lowered = reason.lower()
    for category, keywords in _KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return FailureCategory.OTHER


def parse_skipped_forms(entries: Iterable[Any]) -> List[SkippedForm]:
    """Lenient parse of ``summary.skippedForms`` entries."""
    skipped = []
    for entry in entries or ():
        if not isinstance(entry, Mapping):
            logger.warning("Skipping malformed skipped-form entry")
            continue
        page = entry.get("pageNumber")
        if not isinstance(page, int) or isinstance(page, bool) or page < 1:
            logger.warning(f"Skipped-form entry without a valid page: {entry!r}")
            continue
        suggestions = entry.get("suggestions") or ()
        skipped.append(SkippedForm(
            page_number=page,
            reason=str(entry.get("reason") or "Unknown reason"),
            form_type=entry.get("formType") if isinstance(entry.get("formType"), str) else None,
            suggestions=tuple(str(s) for s in suggestions if isinstance(s, str)),
        ))
    return skipped


def group_failures(skipped: Iterable[SkippedForm]) -> Dict[FailureCategory, List[SkippedForm]]:
    """Skipped pages keyed by category, categories in first-seen order."""
    groups: Dict[FailureCategory, List[SkippedForm]] = {}
    for form in skipped:
        groups.setdefault(categorize_reason(form.reason), []).append(form)
    return groups


def failure_summary(skipped: Iterable[SkippedForm]) -> Dict[str, Any]:
    skipped = list(skipped)
    groups = group_failures(skipped)
    return {
        "total": len(skipped),
        "heading": f"{len(skipped)} Page{'s' if len(skipped) != 1 else ''} Could Not Be Extracted",
        "categories": [
            {
                "category": category.value,
                "label": CATEGORY_LABELS[category],
                "pages": [form.page_number for form in forms],
            }
            for category, forms in groups.items()
        ],
    }
