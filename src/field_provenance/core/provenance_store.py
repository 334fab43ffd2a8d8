"""
Provenance Store

Lenient parser and lookups for the per-document provenance payload produced by
the extraction pipeline. The payload is untrusted: parsing never raises, a
malformed payload yields an empty sequence and malformed entries are skipped.

Payload shape (camelCase, as emitted by the extraction service)::

    [
      {
        "formType": "W-2",
        "pageNumber": 1,
        "boundingBox": {"x": 0.05, "y": 0.1, "width": 0.9, "height": 0.5},
        "formConfidence": 0.93,
        "extractionReason": "Detected employer/employee boxes",
        "fields": [
          {"fieldName": "federalWages", "pageNumber": 1,
           "boundingBox": {...}, "confidence": 0.95,
           "rawValue": "52,000.00", "processedValue": "52000"}
        ]
      }
    ]
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .models import BoundingBox, FieldProvenance, FormProvenance

logger = logging.getLogger(__name__)

RawPayload = Union[str, bytes, bytearray, List[Any], Dict[str, Any], None]


def parse(raw: RawPayload) -> Tuple[FormProvenance, ...]:
    """
    Parse a provenance payload into an ordered tuple of forms.

    Args:
        raw: JSON text (or an already decoded list/dict), possibly absent

    Returns:
        Forms in extraction order; empty when the payload is absent or malformed
    """
    if raw is None:
        return ()

    data: Any = raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            data = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Provenance payload is not valid UTF-8: {e}")
            return ()

    if isinstance(data, str):
        if not data.strip():
            return ()
        try:
            data = json.loads(data)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.warning(f"Malformed provenance JSON ignored: {e}")
            return ()

    if isinstance(data, dict):
        # Some payloads wrap the array in an envelope
        data = data.get("forms", data.get("provenance"))

    if not isinstance(data, list):
        logger.warning(f"Provenance payload is not a list of forms ({type(data).__name__})")
        return ()

    forms = []
    for index, entry in enumerate(data):
        form = _parse_form(entry, index)
        if form is not None:
            forms.append(form)

    logger.debug(f"Parsed {len(forms)} provenance forms ({len(data) - len(forms)} skipped)")
    return tuple(forms)


def _parse_form(entry: Any, index: int) -> Optional[FormProvenance]:
    if not isinstance(entry, dict):
        logger.warning(f"Skipping provenance form #{index}: not an object")
        return None

    form_type = entry.get("formType")
    if not isinstance(form_type, str) or not form_type:
        logger.warning(f"Skipping provenance form #{index}: missing formType")
        return None

    page_number = _page_number(entry.get("pageNumber"), default=1)

    fields = []
    raw_fields = entry.get("fields")
    if isinstance(raw_fields, list):
        for field_entry in raw_fields:
            field = _parse_field(field_entry, page_number, form_type)
            if field is not None:
                fields.append(field)
    elif raw_fields is not None:
        logger.warning(f"Form {form_type}: 'fields' is not a list, ignoring")

    return FormProvenance(
        form_type=form_type,
        page_number=page_number,
        bounding_box=_bounding_box(entry.get("boundingBox")),
        form_confidence=confidence_value(entry.get("formConfidence")),
        extraction_reason=_optional_text(entry.get("extractionReason")),
        fields=tuple(fields),
    )


def _parse_field(entry: Any, form_page: int, form_type: str) -> Optional[FieldProvenance]:
    if not isinstance(entry, dict):
        logger.warning(f"Form {form_type}: skipping non-object field entry")
        return None

    field_name = entry.get("fieldName")
    if not isinstance(field_name, str) or not field_name:
        logger.warning(f"Form {form_type}: skipping field without fieldName")
        return None

    return FieldProvenance(
        field_name=field_name,
        # A field keeps its own page; only an unusable one falls back to the form's
        page_number=_page_number(entry.get("pageNumber"), default=form_page),
        bounding_box=_bounding_box(entry.get("boundingBox")),
        confidence=confidence_value(entry.get("confidence")),
        raw_value=_optional_text(entry.get("rawValue")),
        processed_value=_optional_text(entry.get("processedValue")),
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _page_number(value: Any, default: int) -> int:
    if _is_number(value) and float(value).is_integer() and value >= 1:
        return int(value)
    return default


def confidence_value(value: Any) -> Optional[float]:
    """A finite confidence in [0, 1], else None."""
    if _is_number(value) and 0.0 <= value <= 1.0:
        return float(value)
    return None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if _is_number(value):
        return str(value)
    return None


def _bounding_box(value: Any) -> Optional[BoundingBox]:
    if not isinstance(value, dict):
        return None

    parts = [value.get(key) for key in ("x", "y", "width", "height")]
    if not all(_is_number(part) for part in parts):
        return None

    box = BoundingBox(*(float(part) for part in parts))
    if box.width < 0 or box.height < 0:
        return None
    if not box.is_within_page():
        # Tolerated extraction noise, not a failure
        logger.debug(f"Bounding box exceeds page bounds: {box}")
    return box


def find_form(forms: Iterable[FormProvenance], form_type: str) -> Optional[FormProvenance]:
    """First form of the given type, in provenance order."""
    return next((form for form in forms if form.form_type == form_type), None)


def lookup_field(forms: Iterable[FormProvenance], field_name: str) -> Optional[FieldProvenance]:
    """
    First field with the exact name across all forms, in provenance order.

    Identically named fields in different forms are not disambiguated; the
    earliest form wins.
    """
    for form in forms:
        for field in form.fields:
            if field.field_name == field_name:
                return field
    return None


def all_fields(forms: Iterable[FormProvenance]) -> List[FieldProvenance]:
    return [field for form in forms for field in form.fields]


def fields_on_page(forms: Iterable[FormProvenance], page_number: int) -> List[FieldProvenance]:
    """Fields whose own page is ``page_number`` (not their form's page)."""
    return [field for field in all_fields(forms) if field.page_number == page_number]


@dataclass(frozen=True)
class ProvenanceStore:
    """The parsed provenance of one document."""
    forms: Tuple[FormProvenance, ...] = ()

    @classmethod
    def from_payload(cls, raw: RawPayload) -> "ProvenanceStore":
        return cls(parse(raw))

    def __len__(self) -> int:
        return len(self.forms)

    def __bool__(self) -> bool:
        return bool(self.forms)

    def find_form(self, form_type: str) -> Optional[FormProvenance]:
        return find_form(self.forms, form_type)

    def lookup_field(self, field_name: str) -> Optional[FieldProvenance]:
        return lookup_field(self.forms, field_name)

    def all_fields(self) -> List[FieldProvenance]:
        return all_fields(self.forms)

    def fields_on_page(self, page_number: int) -> List[FieldProvenance]:
        return fields_on_page(self.forms, page_number)

    def duplicate_field_names(self) -> List[str]:
        """Field names defined by more than one form (resolved first-match)."""
        owners: Dict[str, set] = {}
        for form in self.forms:
            for field in form.fields:
                owners.setdefault(field.field_name, set()).add(form.form_type)
        return sorted(name for name, types in owners.items() if len(types) > 1)
