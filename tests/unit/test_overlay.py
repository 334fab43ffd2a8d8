"""
Unit tests for overlay composition and painting.
"""

import unittest

from PIL import Image

from field_provenance.core.confidence import ConfidenceTier, LOW_CONFIDENCE_ADVISORY
from field_provenance.core.models import (
    BoundingBox,
    FieldProvenance,
    HighlightGranularity,
    HighlightTarget,
    LoadState,
    ViewportState,
)
from field_provenance.viewer.overlay import OverlayRenderer, highlight_label

WAGES_BOX = BoundingBox(0.1, 0.2, 0.3, 0.05)

FIELDS = [
    FieldProvenance("federalWages", 1, WAGES_BOX, 0.95, "52,000.00", "52000"),
    FieldProvenance("employer", 1, BoundingBox(0.1, 0.1, 0.4, 0.04), 0.75),
    FieldProvenance("locality", 1, None, 0.8),
    FieldProvenance("localWages", 2, BoundingBox(0.1, 0.5, 0.3, 0.05), 0.6),
]


def ready_state(page=1, width=1000, height=1200):
    return ViewportState(
        page_number=page,
        zoom=1.0,
        load_state=LoadState.READY,
        page_count=2,
        page_width_px=width,
        page_height_px=height,
    )


def wages_target(**overrides):
    values = dict(
        field_name="federalWages",
        form_type="W-2",
        page_number=1,
        bounding_box=WAGES_BOX,
        confidence=0.95,
        raw_value="52,000.00",
        processed_value="52000",
    )
    values.update(overrides)
    return HighlightTarget(**values)


class TestCompose(unittest.TestCase):

    def setUp(self):
        self.renderer = OverlayRenderer()

    def test_active_highlight(self):
        scene = self.renderer.compose(ready_state(), wages_target(), FIELDS)

        active = scene.active
        self.assertEqual(active.field_name, "federalWages")
        self.assertAlmostEqual(active.rect.left, 100)
        self.assertAlmostEqual(active.rect.top, 240)
        self.assertEqual(active.classification.tier, ConfidenceTier.HIGH)
        self.assertEqual(active.label, "federalWages (95%)")

    def test_markers_exclude_active_field(self):
        scene = self.renderer.compose(ready_state(), wages_target(), FIELDS)

        self.assertEqual([m.field_name for m in scene.markers], ["employer"])

    def test_same_name_from_another_form_keeps_marker(self):
        other_form_wages = FieldProvenance("federalWages", 1, BoundingBox(0.55, 0.7, 0.3, 0.05), 0.9)
        scene = self.renderer.compose(ready_state(), wages_target(), FIELDS + [other_form_wages])

        self.assertEqual([m.field_name for m in scene.markers], ["employer", "federalWages"])
        self.assertAlmostEqual(scene.markers[1].rect.top, 830)

    def test_markers_without_highlight(self):
        scene = self.renderer.compose(ready_state(), None, FIELDS)

        self.assertIsNone(scene.active)
        self.assertEqual([m.field_name for m in scene.markers], ["federalWages", "employer"])

    def test_highlight_on_other_page_is_not_drawn(self):
        scene = self.renderer.compose(ready_state(page=2), wages_target(), FIELDS, show_tooltip=True)

        self.assertIsNone(scene.active)
        self.assertIsNone(scene.tooltip)
        self.assertEqual([m.field_name for m in scene.markers], ["localWages"])

    def test_nothing_without_dimensions(self):
        state = ViewportState(page_number=1, zoom=1.0, load_state=LoadState.READY, page_count=2)

        scene = self.renderer.compose(state, wages_target(), FIELDS, show_tooltip=True)

        self.assertTrue(scene.is_empty)

    def test_tooltip_details(self):
        scene = self.renderer.compose(ready_state(), wages_target(), FIELDS, show_tooltip=True)

        tooltip = scene.tooltip
        self.assertEqual(tooltip.title, "federalWages")
        self.assertEqual(tooltip.subtitle, "W-2")
        self.assertIn("Page 1 (10%, 20%)", tooltip.lines)
        self.assertIn("95% - High Confidence", tooltip.lines)
        self.assertIn("Raw Text Detected: 52,000.00", tooltip.lines)
        self.assertIn("Processed Value: 52000", tooltip.lines)
        self.assertIsNone(tooltip.advisory)
        self.assertAlmostEqual(tooltip.anchor.left, 120)

    def test_tooltip_advisory_and_no_source(self):
        target = wages_target(bounding_box=None, confidence=0.5, processed_value="52,000.00",
                              granularity=HighlightGranularity.FORM)

        scene = self.renderer.compose(ready_state(), target, FIELDS, show_tooltip=True)

        self.assertIsNone(scene.active)
        self.assertIn("No source available", scene.tooltip.lines)
        self.assertNotIn("Processed Value: 52,000.00", scene.tooltip.lines)
        self.assertEqual(scene.tooltip.advisory, LOW_CONFIDENCE_ADVISORY)
        self.assertEqual((scene.tooltip.anchor.left, scene.tooltip.anchor.top), (20, 10))

    def test_reduced_motion(self):
        self.assertTrue(self.renderer.compose(ready_state(), None).animate)
        self.assertFalse(OverlayRenderer(reduced_motion=True).compose(ready_state(), None).animate)

    def test_label_without_confidence(self):
        self.assertEqual(highlight_label("employer", None), "employer")

    def test_to_dict(self):
        payload = self.renderer.compose(ready_state(), wages_target(), FIELDS, show_tooltip=True).to_dict()

        self.assertEqual(payload["active"]["tier"], "high")
        self.assertEqual(payload["active"]["granularity"], "field")
        self.assertEqual(len(payload["markers"]), 1)
        self.assertEqual(payload["tooltip"]["title"], "federalWages")


class TestPaint(unittest.TestCase):

    def setUp(self):
        self.renderer = OverlayRenderer()
        self.page = Image.new("RGB", (1000, 1200), "white")

    def test_highlight_is_tinted_with_tier_colour(self):
        scene = self.renderer.compose(ready_state(), wages_target(), FIELDS)

        image = self.renderer.paint(self.page, scene)

        r, g, b = image.getpixel((250, 275))
        self.assertLess(r, 255)
        self.assertGreater(g, r)
        self.assertGreater(g, b)
        self.assertEqual(image.getpixel((900, 1100)), (255, 255, 255))

    def test_zoom_scales_composite_once(self):
        scene = self.renderer.compose(ready_state(), wages_target(), FIELDS)

        image = self.renderer.paint(self.page, scene, zoom=1.5)

        self.assertEqual(image.size, (1500, 1800))

    def test_original_page_is_untouched(self):
        scene = self.renderer.compose(ready_state(), wages_target(), FIELDS, show_tooltip=True)

        self.renderer.paint(self.page, scene)

        self.assertEqual(self.page.getpixel((250, 275)), (255, 255, 255))


if __name__ == '__main__':
    unittest.main()
