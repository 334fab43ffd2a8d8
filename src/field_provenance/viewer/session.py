"""
Review Session

Everything one reviewer works with while a document is open: the viewport,
the render surface, the overlay renderer and the synchronization controller,
plus the field panel and extraction failure summaries built from the same
provenance.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..core.display_fields import FieldPanelRow, build_field_panel
from ..core.extraction_failures import failure_summary, parse_skipped_forms
from ..core.models import DocumentSource, ExtractedDocument, FormLike, HighlightTarget
from ..core.provenance_store import parse
from .document_source import DocumentLoader, SubmissionDocument, create_document_store
from .overlay import OverlayRenderer, OverlayScene
from .rasterizer import PageRasterizer, Pdf2ImageRasterizer
from .render_surface import RenderedComposite, RenderSurface, RenderSurfaceConfig
from .sync import SynchronizationController
from .viewport import ViewportController

logger = logging.getLogger(__name__)


class ReviewSession:
    """One reviewer's document viewer and field panel."""

    def __init__(
        self,
        loader: DocumentLoader,
        rasterizer: PageRasterizer,
        overlay: Optional[OverlayRenderer] = None,
    ):
        self.loader = loader
        self.viewport = ViewportController(rasterizer)
        self.sync = SynchronizationController(self.viewport)
        self.surface = RenderSurface(
            RenderSurfaceConfig(pdf_source=""),
            self.viewport,
            overlay or OverlayRenderer(),
            loader,
        )
        self.submission_id: Optional[str] = None
        self.record: Optional[SubmissionDocument] = None

        self.sync.add_highlight_listener(self._highlight_changed)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ReviewSession":
        """Wire a session to the configured document store and rasterizer."""
        loader = DocumentLoader(
            store=create_document_store(config),
            timeout=config['storage']['timeout'],
        )
        return cls(
            loader=loader,
            rasterizer=Pdf2ImageRasterizer(dpi=config['rendering']['dpi']),
            overlay=OverlayRenderer.from_config(config),
        )

    def _highlight_changed(self, target: Optional[HighlightTarget]):
        self.surface.reconfigure(highlighted_field=target)

    @property
    def document(self) -> Optional[ExtractedDocument]:
        return self.sync.document

    @property
    def highlight(self) -> Optional[HighlightTarget]:
        return self.sync.highlight

    async def open_document(self, submission_id: str, record: SubmissionDocument) -> bool:
        """
        Show a submission document.

        The previous highlight is cleared before anything is awaited, so no
        overlay of the old document can appear over the new one.

        Returns:
            True when the document reached READY, False when it failed or a
            newer document was opened meanwhile
        """
        source = DocumentSource.from_storage(submission_id, record.id)
        document = ExtractedDocument(
            id=record.id,
            file_name=record.file_name,
            byte_source=source,
            provenance=parse(record.field_provenance),
        )
        self.submission_id = submission_id
        self.record = record

        self.sync.switch_document(document)
        self.surface.reconfigure(
            pdf_source=source,
            current_page=None,
            field_provenances=document.provenance,
        )
        logger.info(f"Opening {record.file_name} ({len(document.provenance)} provenance forms)")

        async def fetch() -> bytes:
            return await self.loader.load(source, inline_fallback=record.base64_data)

        return await self.surface.open(fetch=fetch, document_id=record.id)

    def refresh_document(self, record: SubmissionDocument) -> bool:
        """Take updated provenance for the open document without reloading it."""
        current = self.sync.document
        if current is None or record.id != current.id:
            return False
        document = ExtractedDocument(
            id=current.id,
            file_name=record.file_name,
            byte_source=current.byte_source,
            provenance=parse(record.field_provenance),
            page_count=current.page_count,
        )
        if not self.sync.refresh_document(document):
            return False
        self.record = record
        self.surface.reconfigure(field_provenances=document.provenance)
        return True

    async def retry(self) -> bool:
        return await self.viewport.retry()

    def select_field(self, field_name: str, form: FormLike) -> Optional[HighlightTarget]:
        return self.sync.select_field(field_name, form)

    def clear_highlight(self):
        self.sync.clear_highlight()

    # Navigation and zoom

    def go_to_page(self, page: int) -> bool:
        return self.viewport.request_page(page)

    def next_page(self) -> bool:
        return self.viewport.next_page()

    def previous_page(self) -> bool:
        return self.viewport.previous_page()

    def set_zoom(self, zoom: float) -> float:
        return self.viewport.set_zoom(zoom)

    def zoom_in(self) -> float:
        return self.viewport.zoom_in()

    def zoom_out(self) -> float:
        return self.viewport.zoom_out()

    def reset_zoom(self) -> float:
        return self.viewport.reset_zoom()

    # Rendering

    def overlay_scene(self, show_tooltip: bool = False) -> OverlayScene:
        return self.surface.scene(show_tooltip=show_tooltip)

    async def render(self, show_tooltip: bool = False) -> Optional[RenderedComposite]:
        return await self.surface.render(show_tooltip=show_tooltip)

    # Panels

    def field_panel(self, form_data_list: Iterable[Mapping[str, Any]]) -> List[FieldPanelRow]:
        """Rows for every extracted form, linked to the current provenance."""
        rows = []
        for form_data in form_data_list:
            form_type = form_data.get("formType")
            form_provenance = self.sync.store.find_form(form_type) if isinstance(form_type, str) else None
            rows.extend(build_field_panel(form_data, form_provenance, self.sync.highlight))
        return rows

    @staticmethod
    def failures(skipped_forms: Iterable[Any]) -> Dict[str, Any]:
        return failure_summary(parse_skipped_forms(skipped_forms))

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of the session."""
        state = self.viewport.state
        document = self.sync.document
        highlight = self.sync.highlight
        return {
            'submissionId': self.submission_id,
            'document': None if document is None else {
                'id': document.id,
                'fileName': document.file_name,
                'formCount': len(document.provenance),
            },
            'viewport': {
                'pageNumber': state.page_number,
                'pageCount': state.page_count,
                'zoom': state.zoom,
                'loadState': state.load_state.value,
                'error': state.error,
                'canGoPrevious': self.viewport.can_go_previous,
                'canGoNext': self.viewport.can_go_next,
            },
            'highlight': None if highlight is None else {
                'fieldName': highlight.field_name,
                'formType': highlight.form_type,
                'pageNumber': highlight.page_number,
                'confidence': highlight.confidence,
                'granularity': highlight.granularity.value,
                'hasRegion': highlight.has_region,
            },
        }

    async def aclose(self):
        await self.loader.aclose()
