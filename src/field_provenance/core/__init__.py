"""
Core provenance modules.

This package contains the pure, synchronous parts of the viewer:
- Provenance payload parsing and lookups
- Field resolution with form-level fallback
- Confidence classification
- Normalized to pixel coordinate mapping
- Display fields, field panel rows and extraction failure summaries
- Configuration loading
"""

from .confidence import ConfidenceTier, classify
from .config_manager import ConfigurationManager
from .coordinates import marker_rect, to_pixel_rect, tooltip_anchor
from .field_resolver import resolve
from .provenance_store import ProvenanceStore, parse

__all__ = [
    'ConfidenceTier',
    'classify',
    'ConfigurationManager',
    'marker_rect',
    'to_pixel_rect',
    'tooltip_anchor',
    'resolve',
    'ProvenanceStore',
    'parse',
]
