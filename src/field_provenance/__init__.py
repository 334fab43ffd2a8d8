"""
Field Provenance Viewer

Links extracted tax form fields back to the region of the source document
they came from: provenance parsing, field resolution, confidence tiers and a
document viewer with highlight overlays.
"""

__version__ = "1.0.0"
__author__ = "Field Provenance Team"

from .core.models import BoundingBox, FieldProvenance, FormProvenance, HighlightTarget
from .core.provenance_store import ProvenanceStore
from .core.field_resolver import resolve

__all__ = [
    'BoundingBox',
    'FieldProvenance',
    'FormProvenance',
    'HighlightTarget',
    'ProvenanceStore',
    'resolve',
]
