"""
Viewport Controller

Owns the current page, the zoom level and the document load lifecycle:

    IDLE -> LOADING        document selected (begin_load)
    LOADING -> READY       bytes fetched and page count known
    LOADING -> FAILED      fetch or parse error; retry() re-enters LOADING
    READY -> READY         page and zoom changes

Every load gets a new generation token. Results of an awaited fetch, page
count or page render are committed only while their token (and, for renders,
their page and request sequence) is still current, so a slow answer to an old
request never overwrites a newer one.
"""

import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from PIL import Image

from ..core.models import LoadState, ViewportState
from .rasterizer import PageRasterizer

logger = logging.getLogger(__name__)

MIN_ZOOM = 0.5
MAX_ZOOM = 3.0
ZOOM_STEP = 0.25
DEFAULT_ZOOM = 1.0

FetchBytes = Callable[[], Awaitable[bytes]]
PageListener = Callable[[int], None]
ReadyListener = Callable[[ViewportState], None]


@dataclass(frozen=True)
class RenderedPage:
    """An unzoomed page raster committed to the viewport."""
    document_id: str
    page_number: int
    image: Image.Image
    generation: int

    @property
    def width(self) -> int:
        return self.image.size[0]

    @property
    def height(self) -> int:
        return self.image.size[1]


def clamp_zoom(zoom: float) -> float:
    """Snap to the zoom increments and clamp to the supported range."""
    snapped = round(zoom / ZOOM_STEP) * ZOOM_STEP
    return min(MAX_ZOOM, max(MIN_ZOOM, snapped))


class ViewportController:
    """Page/zoom state machine for one viewer."""

    def __init__(self, rasterizer: PageRasterizer):
        self.rasterizer = rasterizer
        self.document_id: Optional[str] = None
        self.load_state = LoadState.IDLE
        self.page_number = 1
        self.page_count = 0
        self.zoom = DEFAULT_ZOOM
        self.error: Optional[str] = None

        self._generation = 0
        self._render_sequence = 0
        self._document_bytes: Optional[bytes] = None
        self._fetch: Optional[FetchBytes] = None
        self._pending_page = 1
        self._page_sizes: Dict[int, Tuple[int, int]] = {}

        self._page_listeners: List[PageListener] = []
        self._ready_listeners: List[ReadyListener] = []

    # Listeners

    def add_page_listener(self, listener: PageListener):
        self._page_listeners.append(listener)

    def remove_page_listener(self, listener: PageListener):
        if listener in self._page_listeners:
            self._page_listeners.remove(listener)

    def add_ready_listener(self, listener: ReadyListener):
        self._ready_listeners.append(listener)

    # Load lifecycle

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def begin_load(self, document_id: str, initial_page: int = 1) -> int:
        """
        Enter LOADING for a document and invalidate everything in flight.

        Args:
            document_id: Identity of the document being loaded
            initial_page: Page to show once the page count is known

        Returns:
            The generation token the load must present to commit
        """
        self._generation += 1
        self.document_id = document_id
        self.load_state = LoadState.LOADING
        self.page_number = 1
        self.page_count = 0
        self.error = None
        self._document_bytes = None
        self._page_sizes.clear()
        self._pending_page = initial_page if isinstance(initial_page, int) and initial_page >= 1 else 1

        logger.info(f"Loading document {document_id} (generation {self._generation})")
        return self._generation

    async def load(self, token: int, fetch: FetchBytes) -> bool:
        """
        Fetch the document bytes and count its pages.

        Args:
            token: Token returned by ``begin_load``
            fetch: Coroutine function returning the document bytes; kept for retry

        Returns:
            True when this load reached READY, False when it failed or went stale
        """
        if not self.is_current(token):
            return False
        self._fetch = fetch

        try:
            document = await fetch()
            page_count = await self.rasterizer.count_pages(document)
        except Exception as e:
            if not self.is_current(token):
                logger.debug(f"Discarding failure of superseded load (generation {token}): {e}")
                return False
            self._fail(str(e) or e.__class__.__name__)
            return False

        if not self.is_current(token):
            logger.debug(f"Discarding superseded load (generation {token})")
            return False

        self._document_bytes = document
        self.page_count = page_count
        self.load_state = LoadState.READY
        self.page_number = self._clamp_page(self._pending_page)
        logger.info(f"✅ Document {self.document_id} ready: {page_count} page(s)")

        state = self.state
        for listener in list(self._ready_listeners):
            listener(state)
        return True

    async def retry(self) -> bool:
        """Re-enter LOADING after a failure, re-running the last fetch."""
        if self.load_state is not LoadState.FAILED or self._fetch is None or self.document_id is None:
            logger.debug(f"Retry ignored in state {self.load_state.value}")
            return False
        logger.info(f"Retrying document {self.document_id}")
        token = self.begin_load(self.document_id, self._pending_page)
        return await self.load(token, self._fetch)

    def _fail(self, message: str):
        self.load_state = LoadState.FAILED
        self.error = message
        logger.error(f"❌ Failed to load document {self.document_id}: {message}")

    # Navigation

    def _clamp_page(self, page: int) -> int:
        return min(max(1, page), max(1, self.page_count))

    def request_page(self, page: int) -> bool:
        """
        Move to ``page``; the same transition serves users and field selection.

        Ignored unless READY. Out-of-range pages are clamped.

        Returns:
            True when the request was accepted
        """
        if self.load_state is not LoadState.READY:
            logger.debug(f"Page request {page} ignored while {self.load_state.value}")
            return False
        try:
            target = self._clamp_page(int(page))
        except OverflowError:
            # Infinite page numbers clamp to the nearest end
            target = self._clamp_page(self.page_count if page > 0 else 1)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric page request {page!r}")
            return False

        previous = self.page_number
        self.page_number = target
        self._pending_page = target
        if target != previous:
            for listener in list(self._page_listeners):
                listener(target)
        return True

    def next_page(self) -> bool:
        return self.request_page(self.page_number + 1)

    def previous_page(self) -> bool:
        return self.request_page(self.page_number - 1)

    @property
    def can_go_previous(self) -> bool:
        return self.load_state is LoadState.READY and self.page_number > 1

    @property
    def can_go_next(self) -> bool:
        return self.load_state is LoadState.READY and self.page_number < self.page_count

    # Zoom

    def set_zoom(self, zoom: float) -> float:
        if isinstance(zoom, (int, float)) and math.isfinite(zoom):
            self.zoom = clamp_zoom(float(zoom))
        return self.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self.zoom + ZOOM_STEP)

    def zoom_out(self) -> float:
        return self.set_zoom(self.zoom - ZOOM_STEP)

    def reset_zoom(self) -> float:
        return self.set_zoom(DEFAULT_ZOOM)

    # Rendering

    def _is_current_render(self, token: int, page: int, sequence: int) -> bool:
        return (
            token == self._generation
            and page == self.page_number
            and sequence == self._render_sequence
        )

    async def render_current_page(self) -> Optional[RenderedPage]:
        """
        Rasterize the current page.

        Returns:
            The committed page, or None when not READY or when a newer
            navigation, render request or document superseded this one
        """
        if self.load_state is not LoadState.READY or self._document_bytes is None:
            return None

        token = self._generation
        page = self.page_number
        document_id = self.document_id
        self._render_sequence += 1
        sequence = self._render_sequence

        try:
            image = await self.rasterizer.render_page(self._document_bytes, page)
        except Exception as e:
            if self._is_current_render(token, page, sequence):
                self._fail(f"Failed to render page {page}: {e}")
            else:
                logger.debug(f"Discarding failure of superseded render of page {page}: {e}")
            return None

        if not self._is_current_render(token, page, sequence):
            logger.debug(f"Discarding stale render of page {page} (generation {token})")
            return None

        self._page_sizes[page] = image.size
        return RenderedPage(document_id=document_id, page_number=page, image=image, generation=token)

    def page_dimensions(self, page: int) -> Optional[Tuple[int, int]]:
        """Unzoomed pixel size of a page rendered at least once, else None."""
        return self._page_sizes.get(page)

    @property
    def state(self) -> ViewportState:
        size = self._page_sizes.get(self.page_number)
        return ViewportState(
            page_number=self.page_number,
            zoom=self.zoom,
            load_state=self.load_state,
            page_count=self.page_count,
            page_width_px=size[0] if size else None,
            page_height_px=size[1] if size else None,
            error=self.error,
        )
