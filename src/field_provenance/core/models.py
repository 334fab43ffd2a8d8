"""
Provenance Data Model

Immutable value objects shared by the provenance store, the resolver, the
viewport and the overlay renderer. Attribute names are snake_case; the
extraction pipeline's camelCase JSON keys are handled by the provenance store.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

# Tolerance for bounding boxes that spill slightly past the page edge.
BOX_EPSILON = 0.01


@dataclass(frozen=True)
class BoundingBox:
    """Normalized rectangle, each component a fraction of page width/height."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def is_within_page(self, epsilon: float = BOX_EPSILON) -> bool:
        """True when the box lies on the page, allowing small extraction noise."""
        return (
            self.x >= 0
            and self.y >= 0
            and self.right <= 1 + epsilon
            and self.bottom <= 1 + epsilon
        )


@dataclass(frozen=True)
class FieldProvenance:
    """Where a single extracted field value came from."""
    field_name: str
    page_number: int
    bounding_box: Optional[BoundingBox] = None
    confidence: Optional[float] = None
    raw_value: Optional[str] = None
    processed_value: Optional[str] = None

    @property
    def is_localized(self) -> bool:
        return self.bounding_box is not None


@dataclass(frozen=True)
class FormProvenance:
    """Provenance of one extracted form and its fields."""
    form_type: str
    page_number: int
    bounding_box: Optional[BoundingBox] = None
    form_confidence: Optional[float] = None
    extraction_reason: Optional[str] = None
    fields: Tuple[FieldProvenance, ...] = ()


@dataclass(frozen=True)
class FormRef:
    """Minimal reference to a form, as passed by field-list panels."""
    form_type: str


FormLike = Union[str, FormRef, Any]


class SourceKind(Enum):
    """How document bytes are obtained."""
    INLINE_BASE64 = "inline_base64"
    DATA_URL = "data_url"
    URL = "url"
    STORAGE = "storage"


@dataclass(frozen=True)
class DocumentSource:
    """Reference to the bytes of a source document."""
    kind: SourceKind
    value: str
    submission_id: Optional[str] = None
    document_id: Optional[str] = None

    @classmethod
    def from_pdf_source(cls, pdf_source: str) -> "DocumentSource":
        """Classify a render-surface ``pdf_source`` string."""
        text = pdf_source.strip()
        if text.startswith("data:"):
            return cls(SourceKind.DATA_URL, text)
        if text.startswith(("http://", "https://")):
            return cls(SourceKind.URL, text)
        return cls(SourceKind.INLINE_BASE64, text)

    @classmethod
    def from_storage(cls, submission_id: str, document_id: str) -> "DocumentSource":
        return cls(
            SourceKind.STORAGE,
            f"{submission_id}/{document_id}",
            submission_id=submission_id,
            document_id=document_id,
        )

    def describe(self) -> str:
        """Short, log-safe description (never the inline payload)."""
        if self.kind in (SourceKind.INLINE_BASE64, SourceKind.DATA_URL):
            return f"{self.kind.value} ({len(self.value)} chars)"
        return f"{self.kind.value}:{self.value}"


@dataclass(frozen=True)
class ExtractedDocument:
    """A document selected for review together with its parsed provenance."""
    id: str
    file_name: str
    byte_source: DocumentSource
    provenance: Tuple[FormProvenance, ...] = ()
    page_count: Optional[int] = None


class HighlightGranularity(Enum):
    FIELD = "field"
    FORM = "form"


@dataclass(frozen=True)
class HighlightTarget:
    """The single field currently selected for visual emphasis."""
    field_name: str
    form_type: str
    page_number: int
    bounding_box: Optional[BoundingBox] = None
    confidence: Optional[float] = None
    granularity: HighlightGranularity = HighlightGranularity.FIELD
    raw_value: Optional[str] = None
    processed_value: Optional[str] = None

    @property
    def has_region(self) -> bool:
        return self.bounding_box is not None


class LoadState(Enum):
    """Document load lifecycle of the viewport."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ViewportState:
    """Snapshot of the viewport. Page dimensions are unzoomed pixels."""
    page_number: int
    zoom: float
    load_state: LoadState = LoadState.IDLE
    page_count: int = 0
    page_width_px: Optional[int] = None
    page_height_px: Optional[int] = None
    error: Optional[str] = None

    @property
    def has_dimensions(self) -> bool:
        return bool(self.page_width_px) and bool(self.page_height_px)


@dataclass(frozen=True)
class PixelRect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def as_box(self) -> Tuple[float, float, float, float]:
        """(left, top, right, bottom) as Pillow expects."""
        return (self.left, self.top, self.right, self.bottom)


@dataclass(frozen=True)
class TooltipAnchor:
    left: float
    top: float


@dataclass(frozen=True)
class SkippedForm:
    """A page the extraction pipeline could not turn into a form."""
    page_number: int
    reason: str
    form_type: Optional[str] = None
    suggestions: Tuple[str, ...] = field(default_factory=tuple)
