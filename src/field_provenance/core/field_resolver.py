"""
Field Resolver

Maps a logical field of a form to the best available visual region using a
fallback hierarchy: field-level provenance, then form-level provenance, then
nothing.
"""

import logging
from collections.abc import Mapping
from typing import Iterable, Optional

from .models import FormLike, FormProvenance, HighlightGranularity, HighlightTarget
from .provenance_store import find_form

logger = logging.getLogger(__name__)


def form_type_of(form: FormLike) -> str:
    """
    Extract the form type from the shapes field panels pass around.

    Accepts a plain string, a ``FormRef``/``FormProvenance`` (``form_type``
    attribute) or a mapping with ``formType`` or ``form_type``.
    """
    if isinstance(form, str):
        return form
    if isinstance(form, Mapping):
        value = form.get("formType", form.get("form_type"))
    else:
        value = getattr(form, "form_type", None)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Cannot determine form type from {form!r}")
    return value


def resolve(
    forms: Iterable[FormProvenance],
    field_name: str,
    form: FormLike,
) -> Optional[HighlightTarget]:
    """
    Resolve the highlight target for ``field_name`` of ``form``.

    Args:
        forms: Provenance of the current document, in extraction order
        field_name: Requested field name (also the label of the target)
        form: The form the field belongs to

    Returns:
        A field-granular target when the field has its own bounding box, a
        form-granular target when only the form is localized, otherwise None
    """
    form_type = form_type_of(form)
    form_provenance = find_form(forms, form_type)

    if form_provenance is None:
        logger.debug(f"No provenance for form {form_type}; '{field_name}' has no source")
        return None

    field = next(
        (f for f in form_provenance.fields if f.field_name == field_name),
        None,
    )
    if field is not None and field.bounding_box is not None:
        return HighlightTarget(
            field_name=field.field_name,
            form_type=form_type,
            page_number=field.page_number,
            bounding_box=field.bounding_box,
            confidence=field.confidence,
            granularity=HighlightGranularity.FIELD,
            raw_value=field.raw_value,
            processed_value=field.processed_value,
        )

    logger.debug(f"Falling back to form-level provenance of {form_type} for '{field_name}'")
    return HighlightTarget(
        field_name=field_name,
        form_type=form_type,
        page_number=form_provenance.page_number,
        bounding_box=form_provenance.bounding_box,
        confidence=form_provenance.form_confidence,
        granularity=HighlightGranularity.FORM,
        raw_value=field.raw_value if field else None,
        processed_value=field.processed_value if field else None,
    )
