"""
Render Surface

The embeddable document viewer: a viewport, the overlay renderer and the
configuration a host passes in (document source, page, page callback,
highlighted field and provenance).
"""

import io
import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Optional, Tuple, Union

from PIL import Image

from ..core.models import DocumentSource, FormProvenance, HighlightTarget
from ..core.provenance_store import all_fields
from .document_source import DocumentLoader
from .overlay import OverlayRenderer, OverlayScene
from .rasterizer import Pdf2ImageRasterizer
from .viewport import FetchBytes, ViewportController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderSurfaceConfig:
    pdf_source: Union[str, DocumentSource]
    current_page: Optional[int] = None
    on_page_change: Optional[Callable[[int], None]] = None
    highlighted_field: Optional[HighlightTarget] = None
    field_provenances: Tuple[FormProvenance, ...] = ()

    @property
    def source(self) -> DocumentSource:
        if isinstance(self.pdf_source, DocumentSource):
            return self.pdf_source
        return DocumentSource.from_pdf_source(self.pdf_source)


@dataclass(frozen=True)
class RenderedComposite:
    """A page raster with its overlay, scaled by the zoom in effect."""
    document_id: Optional[str]
    page_number: int
    zoom: float
    image: Image.Image
    scene: OverlayScene

    def to_png(self) -> bytes:
        buffer = io.BytesIO()
        self.image.save(buffer, format="PNG")
        return buffer.getvalue()


class RenderSurface:
    """Displays one document page at a time with its provenance overlay."""

    def __init__(
        self,
        config: RenderSurfaceConfig,
        viewport: ViewportController,
        overlay: Optional[OverlayRenderer] = None,
        loader: Optional[DocumentLoader] = None,
    ):
        self.config = config
        self.viewport = viewport
        self.overlay = overlay or OverlayRenderer()
        self.loader = loader or DocumentLoader()
        self.needs_reload = True

        viewport.add_page_listener(self._page_changed)

    @classmethod
    def create(cls, config: RenderSurfaceConfig, dpi: int = 100,
               overlay: Optional[OverlayRenderer] = None) -> "RenderSurface":
        """Standalone surface with its own viewport and pdf2image rasterizer."""
        return cls(config, ViewportController(Pdf2ImageRasterizer(dpi=dpi)), overlay)

    def _page_changed(self, page: int):
        if self.config.on_page_change is not None:
            self.config.on_page_change(page)

    async def open(self, fetch: Optional[FetchBytes] = None, document_id: Optional[str] = None) -> bool:
        """
        Load the configured document.

        Args:
            fetch: Coroutine function returning the bytes; defaults to loading
                ``pdf_source`` through the document loader
            document_id: Identity of the document, defaults to the source description

        Returns:
            True when the document reached READY
        """
        source = self.config.source
        token = self.viewport.begin_load(document_id or source.describe(), self.config.current_page or 1)
        self.needs_reload = False

        if fetch is None:
            async def fetch() -> bytes:
                return await self.loader.load(source)

        return await self.viewport.load(token, fetch)

    def reconfigure(self, **changes: Any) -> RenderSurfaceConfig:
        """
        Apply configuration changes from the host.

        A new ``current_page`` or a highlight on another page turns into a page
        request; a new ``pdf_source`` marks the surface for reload.
        """
        known = {f.name for f in fields(RenderSurfaceConfig)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown render surface option(s): {', '.join(sorted(unknown))}")

        previous = self.config
        self.config = replace(previous, **changes)

        if 'pdf_source' in changes and changes['pdf_source'] != previous.pdf_source:
            self.needs_reload = True

        page = changes.get('current_page')
        if page is not None:
            self.viewport.request_page(page)

        target = changes.get('highlighted_field')
        if target is not None and target.page_number != self.viewport.page_number:
            self.viewport.request_page(target.page_number)

        return self.config

    def scene(self, show_tooltip: bool = False) -> OverlayScene:
        """Overlay of the current page without rasterizing it."""
        return self.overlay.compose(
            self.viewport.state,
            self.config.highlighted_field,
            all_fields(self.config.field_provenances),
            show_tooltip=show_tooltip,
        )

    async def render(self, show_tooltip: bool = False) -> Optional[RenderedComposite]:
        """
        Rasterize the current page and paint its overlay.

        Returns:
            The composite, or None when the document is not ready or the render
            was superseded
        """
        page = await self.viewport.render_current_page()
        if page is None:
            return None

        scene = self.scene(show_tooltip=show_tooltip)
        zoom = self.viewport.zoom
        return RenderedComposite(
            document_id=page.document_id,
            page_number=page.page_number,
            zoom=zoom,
            image=self.overlay.paint(page.image, scene, zoom),
            scene=scene,
        )

    async def aclose(self):
        await self.loader.aclose()
