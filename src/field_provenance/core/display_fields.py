"""
Display Fields

Decides which values of an extracted form a field-list panel shows and builds
the rows the panel renders next to the document viewer.

A ``DisplayField`` is either a ``SchemaField`` (declared for a known form type)
or an ``InferredField`` (best effort, guessed from the form's own string and
number values when no schema exists). Consumers can tell the two apart instead
of relying on the shape of the form data.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .confidence import ConfidenceClassification, classify, format_confidence
from .models import FormProvenance, HighlightTarget
from .provenance_store import confidence_value

logger = logging.getLogger(__name__)


class ValueFormat(Enum):
    TEXT = "text"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"


@dataclass(frozen=True)
class SchemaField:
    key: str
    label: str
    value_format: ValueFormat = ValueFormat.TEXT
    inferred = False


@dataclass(frozen=True)
class InferredField:
    key: str
    label: str
    value_format: ValueFormat = ValueFormat.TEXT
    inferred = True


DisplayField = Union[SchemaField, InferredField]

_C = ValueFormat.CURRENCY

FORM_DISPLAY_FIELDS: Dict[str, Tuple[SchemaField, ...]] = {
    "W-2": (
        SchemaField("employer", "Employer"),
        SchemaField("employerEin", "Employer EIN"),
        SchemaField("federalWages", "Federal Wages (Box 1)", _C),
        SchemaField("medicareWages", "Medicare Wages (Box 5)", _C),
        SchemaField("localWages", "Local Wages (Box 18)", _C),
        SchemaField("localWithheld", "Local Tax Withheld (Box 19)", _C),
        SchemaField("locality", "Locality (Box 20)"),
    ),
    "Federal 1040": (
        SchemaField("wages", "Total Wages (Line 1z)", _C),
        SchemaField("qualifiedDividends", "Qualified Dividends (Line 3a)", _C),
        SchemaField("capitalGains", "Capital Gains (Line 7)", _C),
        SchemaField("totalIncome", "Total Income (Line 9)", _C),
        SchemaField("adjustedGrossIncome", "Adjusted Gross Income (Line 11)", _C),
        SchemaField("totalTax", "Total Tax (Line 24)", _C),
    ),
    "1099-NEC": (
        SchemaField("payer", "Payer"),
        SchemaField("incomeAmount", "Income Amount", _C),
        SchemaField("federalWithheld", "Federal Withheld", _C),
        SchemaField("locality", "Locality"),
    ),
    "1099-MISC": (
        SchemaField("payer", "Payer"),
        SchemaField("incomeAmount", "Income Amount", _C),
        SchemaField("federalWithheld", "Federal Withheld", _C),
        SchemaField("stateWithheld", "State Withheld", _C),
    ),
    "Schedule C": (
        SchemaField("businessName", "Business Name"),
        SchemaField("businessEin", "Business EIN"),
        SchemaField("grossReceipts", "Gross Receipts", _C),
        SchemaField("totalExpenses", "Total Expenses", _C),
        SchemaField("netProfit", "Net Profit", _C),
    ),
    "Schedule E": (
        SchemaField("totalNetIncome", "Total Net Income", _C),
    ),
    "W-2G": (
        SchemaField("payer", "Payer"),
        SchemaField("grossWinnings", "Gross Winnings", _C),
        SchemaField("dateWon", "Date Won"),
        SchemaField("typeOfWager", "Type of Wager"),
        SchemaField("federalWithheld", "Federal Withheld", _C),
    ),
}

# Form metadata that is never shown as an extracted value
METADATA_KEYS = frozenset({
    "id", "fileName", "formType", "taxYear", "confidenceScore",
    "fieldConfidence", "sourcePage", "extractionReason", "owner",
})

ACRONYMS = {"ein": "EIN", "ssn": "SSN", "tin": "TIN", "agi": "AGI", "nol": "NOL"}


def camel_to_title(name: str) -> str:
    """``employerEin`` -> ``Employer EIN``."""
    words = re.sub(r"([A-Z])", r" \1", name).split()
    return " ".join(
        ACRONYMS.get(word.lower(), word[:1].upper() + word[1:]) for word in words
    )


def _is_display_value(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def display_fields_for(form_type: str, form_data: Mapping[str, Any]) -> List[DisplayField]:
    """Schema fields for known form types, otherwise inferred fields."""
    schema = FORM_DISPLAY_FIELDS.get(form_type)
    if schema:
        return list(schema)

    inferred: List[DisplayField] = []
    for key, value in form_data.items():
        if key in METADATA_KEYS or not _is_display_value(value):
            continue
        # Large numbers on unknown forms are almost always amounts
        is_amount = isinstance(value, (int, float)) and value > 100
        inferred.append(InferredField(
            key=key,
            label=camel_to_title(key),
            value_format=ValueFormat.CURRENCY if is_amount else ValueFormat.TEXT,
        ))
    logger.debug(f"Inferred {len(inferred)} display fields for unknown form type {form_type}")
    return inferred


def format_value(value: Any, value_format: ValueFormat = ValueFormat.TEXT) -> str:
    if value is None:
        return "—"
    is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
    if value_format is ValueFormat.CURRENCY and is_number:
        sign = "-" if value < 0 else ""
        return f"{sign}${abs(value):,.2f}"
    if value_format is ValueFormat.PERCENTAGE and is_number:
        return f"{value * 100:.1f}%"
    return str(value)


@dataclass(frozen=True)
class FieldPanelRow:
    """One row of the field list panel."""
    form_type: str
    field: DisplayField
    display_value: str
    confidence: Optional[float]
    classification: ConfidenceClassification
    page_number: Optional[int]
    has_source: bool
    is_highlighted: bool

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence is not None and self.classification.requires_manual_verification

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formType": self.form_type,
            "key": self.field.key,
            "label": self.field.label,
            "inferred": self.field.inferred,
            "value": self.display_value,
            "confidence": self.confidence,
            "confidenceText": format_confidence(self.confidence),
            "tier": self.classification.tier.value,
            "colorRole": self.classification.color_role,
            "lowConfidence": self.is_low_confidence,
            "pageNumber": self.page_number,
            "hasSource": self.has_source,
            "highlighted": self.is_highlighted,
        }


def _field_confidence(
    key: str,
    form_data: Mapping[str, Any],
    form_provenance: Optional[FormProvenance],
) -> Optional[float]:
    # The form's own per-field confidence map takes precedence over provenance
    field_confidence = form_data.get("fieldConfidence")
    if isinstance(field_confidence, Mapping):
        value = confidence_value(field_confidence.get(key))
        if value is not None:
            return value
    if form_provenance is not None:
        for field in form_provenance.fields:
            if field.field_name == key:
                return field.confidence
    return None


def build_field_panel(
    form_data: Mapping[str, Any],
    form_provenance: Optional[FormProvenance] = None,
    highlight: Optional[HighlightTarget] = None,
) -> List[FieldPanelRow]:
    """
    Build the panel rows of one extracted form.

    Args:
        form_data: Extracted values keyed by field name, plus form metadata
        form_provenance: Provenance of the same form, if any
        highlight: The active highlight target, used to mark the selected row

    Returns:
        Rows in display order
    """
    form_type = str(form_data.get("formType", form_provenance.form_type if form_provenance else ""))
    rows = []
    for display_field in display_fields_for(form_type, form_data):
        provenance = None
        if form_provenance is not None:
            provenance = next(
                (f for f in form_provenance.fields if f.field_name == display_field.key),
                None,
            )
        confidence = _field_confidence(display_field.key, form_data, form_provenance)
        has_source = (provenance is not None) or (form_provenance is not None)
        rows.append(FieldPanelRow(
            form_type=form_type,
            field=display_field,
            display_value=format_value(form_data.get(display_field.key), display_field.value_format),
            confidence=confidence,
            classification=classify(confidence),
            page_number=provenance.page_number if provenance else None,
            has_source=has_source,
            is_highlighted=(
                highlight is not None
                and highlight.field_name == display_field.key
                and highlight.form_type == form_type
            ),
        ))
    return rows
