"""
Overlay Renderer

Builds the overlay for the page on screen and paints it onto the page raster:

- at most one active highlight: full rectangle, tier colour and a label
- passive markers: a small dot for every other localized field on the page
- an optional detail tooltip for the highlighted field

The scene is computed against the unzoomed page dimensions; ``paint`` scales
the finished composite once by the viewport zoom.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from ..core.confidence import ConfidenceClassification, badge_text, classify, format_confidence
from ..core.coordinates import (
    DEFAULT_MARKER_SIZE,
    DEFAULT_MIN_MARGIN,
    DEFAULT_TOOLTIP_HEIGHT,
    DEFAULT_TOOLTIP_OFFSET,
    DEFAULT_TOOLTIP_WIDTH,
    marker_rect,
    to_pixel_rect,
    tooltip_anchor,
)
from ..core.models import (
    FieldProvenance,
    HighlightGranularity,
    HighlightTarget,
    PixelRect,
    TooltipAnchor,
    ViewportState,
)

logger = logging.getLogger(__name__)

FILL_ALPHA = 0.3
BORDER_ALPHA = 0.8
NO_SOURCE_LABEL = "No source available"


@dataclass(frozen=True)
class ActiveHighlight:
    field_name: str
    form_type: str
    rect: PixelRect
    classification: ConfidenceClassification
    label: str
    granularity: HighlightGranularity


@dataclass(frozen=True)
class FieldMarker:
    field_name: str
    rect: PixelRect
    classification: ConfidenceClassification
    title: str


@dataclass(frozen=True)
class Tooltip:
    anchor: TooltipAnchor
    width: float
    height: float
    title: str
    subtitle: str
    lines: Tuple[str, ...]
    classification: ConfidenceClassification
    advisory: Optional[str] = None


@dataclass(frozen=True)
class OverlayScene:
    page_number: int
    page_width_px: Optional[int] = None
    page_height_px: Optional[int] = None
    active: Optional[ActiveHighlight] = None
    markers: Tuple[FieldMarker, ...] = field(default_factory=tuple)
    tooltip: Optional[Tooltip] = None
    animate: bool = True

    @property
    def is_empty(self) -> bool:
        return self.active is None and not self.markers and self.tooltip is None

    def to_dict(self) -> Dict[str, Any]:
        def rect(r: PixelRect) -> Dict[str, float]:
            return {"left": r.left, "top": r.top, "width": r.width, "height": r.height}

        return {
            "pageNumber": self.page_number,
            "pageWidthPx": self.page_width_px,
            "pageHeightPx": self.page_height_px,
            "animate": self.animate,
            "active": None if self.active is None else {
                "fieldName": self.active.field_name,
                "formType": self.active.form_type,
                "rect": rect(self.active.rect),
                "tier": self.active.classification.tier.value,
                "colorRole": self.active.classification.color_role,
                "label": self.active.label,
                "granularity": self.active.granularity.value,
            },
            "markers": [
                {
                    "fieldName": marker.field_name,
                    "rect": rect(marker.rect),
                    "tier": marker.classification.tier.value,
                    "title": marker.title,
                }
                for marker in self.markers
            ],
            "tooltip": None if self.tooltip is None else {
                "left": self.tooltip.anchor.left,
                "top": self.tooltip.anchor.top,
                "title": self.tooltip.title,
                "subtitle": self.tooltip.subtitle,
                "lines": list(self.tooltip.lines),
                "advisory": self.tooltip.advisory,
            },
        }


def highlight_label(field_name: str, confidence: Optional[float]) -> str:
    percent = format_confidence(confidence)
    return f"{field_name} ({percent})" if percent else field_name


class OverlayRenderer:
    """Composes and paints overlays for the current page."""

    def __init__(
        self,
        tooltip_width: int = DEFAULT_TOOLTIP_WIDTH,
        tooltip_height: int = DEFAULT_TOOLTIP_HEIGHT,
        tooltip_offset: int = DEFAULT_TOOLTIP_OFFSET,
        min_margin: int = DEFAULT_MIN_MARGIN,
        marker_size: int = DEFAULT_MARKER_SIZE,
        reduced_motion: bool = False,
    ):
        self.tooltip_width = tooltip_width
        self.tooltip_height = tooltip_height
        self.tooltip_offset = tooltip_offset
        self.min_margin = min_margin
        self.marker_size = marker_size
        self.reduced_motion = reduced_motion
        self.font = ImageFont.load_default()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "OverlayRenderer":
        rendering = config['rendering']
        return cls(
            tooltip_width=rendering['tooltip_width'],
            tooltip_height=rendering['tooltip_height'],
            tooltip_offset=rendering['tooltip_offset'],
            min_margin=rendering['tooltip_min_margin'],
            marker_size=rendering['marker_size'],
            reduced_motion=rendering['reduced_motion'],
        )

    def compose(
        self,
        state: ViewportState,
        highlight: Optional[HighlightTarget],
        fields: Iterable[FieldProvenance] = (),
        show_tooltip: bool = False,
    ) -> OverlayScene:
        """
        Build the overlay of the viewport's current page.

        Args:
            state: Viewport snapshot; nothing is drawn until its page has dimensions
            highlight: The active selection, drawn only on its own page
            fields: Provenance of every field of the document
            show_tooltip: Include the detail tooltip for the highlight

        Returns:
            The scene for ``state.page_number``
        """
        page = state.page_number
        animate = not self.reduced_motion
        if not state.has_dimensions:
            return OverlayScene(page_number=page, animate=animate)

        width, height = state.page_width_px, state.page_height_px
        on_this_page = highlight is not None and highlight.page_number == page

        active = None
        if on_this_page and highlight.bounding_box is not None:
            active = ActiveHighlight(
                field_name=highlight.field_name,
                form_type=highlight.form_type,
                rect=to_pixel_rect(highlight.bounding_box, width, height),
                classification=classify(highlight.confidence),
                label=highlight_label(highlight.field_name, highlight.confidence),
                granularity=highlight.granularity,
            )

        markers = []
        for field_provenance in fields:
            if field_provenance.page_number != page or field_provenance.bounding_box is None:
                continue
            if (active is not None
                    and field_provenance.field_name == highlight.field_name
                    and field_provenance.bounding_box == highlight.bounding_box):
                continue
            markers.append(FieldMarker(
                field_name=field_provenance.field_name,
                rect=marker_rect(field_provenance.bounding_box, width, height, self.marker_size),
                classification=classify(field_provenance.confidence),
                title=field_provenance.field_name,
            ))

        tooltip = None
        if show_tooltip and on_this_page:
            tooltip = self._tooltip(highlight, width, height)

        return OverlayScene(
            page_number=page,
            page_width_px=width,
            page_height_px=height,
            active=active,
            markers=tuple(markers),
            tooltip=tooltip,
            animate=animate,
        )

    def _tooltip(self, highlight: HighlightTarget, width: int, height: int) -> Tooltip:
        box = highlight.bounding_box
        location = f"Page {highlight.page_number}"
        if box is not None:
            location += f" ({round(box.x * 100)}%, {round(box.y * 100)}%)"

        lines = [location]
        if highlight.confidence is not None:
            lines.append(badge_text(highlight.confidence))
        if box is None:
            lines.append(NO_SOURCE_LABEL)
        elif highlight.granularity is HighlightGranularity.FORM:
            lines.append("Form-level region")
        if highlight.raw_value:
            lines.append(f"Raw Text Detected: {highlight.raw_value}")
        if highlight.processed_value and highlight.processed_value != highlight.raw_value:
            lines.append(f"Processed Value: {highlight.processed_value}")

        classification = classify(highlight.confidence)
        return Tooltip(
            anchor=tooltip_anchor(
                box, width, height,
                tooltip_width=self.tooltip_width,
                tooltip_height=self.tooltip_height,
                offset=self.tooltip_offset,
                min_margin=self.min_margin,
            ),
            width=self.tooltip_width,
            height=self.tooltip_height,
            title=highlight.field_name,
            subtitle=highlight.form_type,
            lines=tuple(lines),
            classification=classification,
            advisory=classification.advisory if highlight.confidence is not None else None,
        )

    def paint(self, page_image: Image.Image, scene: OverlayScene, zoom: float = 1.0) -> Image.Image:
        """
        Draw the scene onto a copy of the page and apply the zoom once.

        Markers are drawn before the active highlight so they never cover it.
        """
        base = page_image.convert("RGBA")
        layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)

        for marker in scene.markers:
            draw.ellipse(
                marker.rect.as_box(),
                fill=marker.classification.rgba(BORDER_ALPHA),
                outline=(255, 255, 255, 255),
                width=2,
            )

        if scene.active is not None:
            self._paint_highlight(draw, scene.active)

        if scene.tooltip is not None:
            self._paint_tooltip(draw, scene.tooltip)

        composite = Image.alpha_composite(base, layer).convert("RGB")
        if zoom != 1.0:
            size = (max(1, round(composite.width * zoom)), max(1, round(composite.height * zoom)))
            composite = composite.resize(size, Image.Resampling.LANCZOS)
        return composite

    def _paint_highlight(self, draw: ImageDraw.ImageDraw, active: ActiveHighlight):
        classification = active.classification
        draw.rectangle(
            active.rect.as_box(),
            fill=classification.rgba(FILL_ALPHA),
            outline=classification.rgba(BORDER_ALPHA),
            width=2,
        )

        # Label badge sits just above the rectangle, pushed inside the page when needed
        left, top, right, bottom = draw.textbbox((0, 0), active.label, font=self.font)
        badge_width, badge_height = right - left + 8, bottom - top + 6
        badge_left = active.rect.left
        badge_top = max(active.rect.top - badge_height - 2, 0)
        draw.rectangle(
            (badge_left, badge_top, badge_left + badge_width, badge_top + badge_height),
            fill=classification.rgba(BORDER_ALPHA),
        )
        draw.text((badge_left + 4, badge_top + 3), active.label, fill=(255, 255, 255, 255), font=self.font)

    def _paint_tooltip(self, draw: ImageDraw.ImageDraw, tooltip: Tooltip):
        left, top = tooltip.anchor.left, tooltip.anchor.top
        draw.rectangle(
            (left, top, left + tooltip.width, top + tooltip.height),
            fill=(255, 255, 255, 240),
            outline=(220, 222, 222, 255),
            width=1,
        )

        lines: List[Tuple[str, Tuple[int, int, int, int]]] = [
            (tooltip.title, (15, 16, 18, 255)),
            (tooltip.subtitle, (93, 101, 103, 255)),
        ]
        lines.extend((line, (16, 33, 36, 255)) for line in tooltip.lines)
        if tooltip.advisory:
            lines.append(("Low confidence: verify manually", tooltip.classification.rgba(1.0)))

        y = top + 4
        for text, colour in lines:
            _, line_top, _, line_bottom = draw.textbbox((0, 0), text, font=self.font)
            line_height = line_bottom - line_top + 3
            if y + line_height > top + tooltip.height:
                break
            draw.text((left + 6, y), text, fill=colour, font=self.font)
            y += line_height
