"""
Coordinate Mapper

Pure conversions from normalized page coordinates to pixel positions on the
unzoomed page raster. Zoom is never applied here; the renderer scales the
finished page and overlay composite once.
"""

from typing import Optional

from .models import BoundingBox, PixelRect, TooltipAnchor

DEFAULT_TOOLTIP_WIDTH = 200
DEFAULT_TOOLTIP_HEIGHT = 100
DEFAULT_TOOLTIP_OFFSET = 20
DEFAULT_MIN_MARGIN = 10
DEFAULT_MARKER_SIZE = 12
MARKER_LIFT = 10


def to_pixel_rect(box: BoundingBox, page_width_px: float, page_height_px: float) -> PixelRect:
    """Scale a normalized box by the page's unzoomed pixel dimensions."""
    return PixelRect(
        left=box.x * page_width_px,
        top=box.y * page_height_px,
        width=box.width * page_width_px,
        height=box.height * page_height_px,
    )


def tooltip_anchor(
    box: Optional[BoundingBox],
    page_width_px: float,
    page_height_px: float,
    tooltip_width: float = DEFAULT_TOOLTIP_WIDTH,
    tooltip_height: float = DEFAULT_TOOLTIP_HEIGHT,
    offset: float = DEFAULT_TOOLTIP_OFFSET,
    min_margin: float = DEFAULT_MIN_MARGIN,
) -> TooltipAnchor:
    """
    Place the detail tooltip near a box, clamped to the page.

    The left edge never passes ``page_width_px - tooltip_width`` and the top
    edge never rises above ``min_margin``, so fields near the page edges
    still get an on-page tooltip.
    """
    max_left = page_width_px - tooltip_width
    if box is None:
        return TooltipAnchor(left=min(offset, max_left), top=min_margin)

    return TooltipAnchor(
        left=min(box.x * page_width_px + offset, max_left),
        top=max(box.y * page_height_px - tooltip_height - offset, min_margin),
    )


def marker_rect(
    box: BoundingBox,
    page_width_px: float,
    page_height_px: float,
    size: float = DEFAULT_MARKER_SIZE,
) -> PixelRect:
    """Small square indicator centred above a box, kept on the page."""
    rect = to_pixel_rect(box, page_width_px, page_height_px)
    left = rect.left + rect.width / 2 - size / 2
    top = rect.top - MARKER_LIFT
    left = min(max(left, 0.0), max(page_width_px - size, 0.0))
    top = min(max(top, 0.0), max(page_height_px - size, 0.0))
    return PixelRect(left=left, top=top, width=size, height=size)
