"""
Unit tests for the embeddable render surface.
"""

import base64
import unittest

from PIL import Image

from field_provenance.core.models import (
    BoundingBox,
    DocumentSource,
    FieldProvenance,
    FormProvenance,
    HighlightTarget,
    LoadState,
    SourceKind,
)
from field_provenance.viewer.render_surface import RenderSurface, RenderSurfaceConfig
from field_provenance.viewer.viewport import ViewportController

PDF_BASE64 = base64.b64encode(b"%PDF-1.7 surface").decode("ascii")

PROVENANCE = (
    FormProvenance(
        form_type="W-2",
        page_number=1,
        fields=(
            FieldProvenance("federalWages", 1, BoundingBox(0.1, 0.2, 0.3, 0.05), 0.95),
            FieldProvenance("localWages", 2, BoundingBox(0.1, 0.5, 0.3, 0.05), 0.75),
        ),
    ),
)


class FakeRasterizer:

    def __init__(self):
        self.documents = []

    async def count_pages(self, document):
        self.documents.append(document)
        return 2

    async def render_page(self, document, page_number):
        return Image.new("RGB", (400, 500), "white")


class TestRenderSurface(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.rasterizer = FakeRasterizer()
        self.page_changes = []
        self.surface = RenderSurface(
            RenderSurfaceConfig(
                pdf_source=f"data:application/pdf;base64,{PDF_BASE64}",
                on_page_change=self.page_changes.append,
                field_provenances=PROVENANCE,
            ),
            ViewportController(self.rasterizer),
        )

    async def test_open_decodes_inline_source(self):
        self.assertTrue(await self.surface.open())

        self.assertEqual(self.rasterizer.documents, [b"%PDF-1.7 surface"])
        self.assertEqual(self.surface.viewport.load_state, LoadState.READY)
        self.assertFalse(self.surface.needs_reload)

    async def test_invalid_source_fails(self):
        self.surface.reconfigure(pdf_source="***")

        self.assertFalse(await self.surface.open())
        self.assertEqual(self.surface.viewport.load_state, LoadState.FAILED)

    async def test_open_with_custom_fetch(self):
        async def fetch():
            return b"other"

        self.assertTrue(await self.surface.open(fetch=fetch, document_id="doc-7"))
        self.assertEqual(self.surface.viewport.document_id, "doc-7")

    async def test_current_page_change_requests_page(self):
        await self.surface.open()

        self.surface.reconfigure(current_page=2)

        self.assertEqual(self.surface.viewport.page_number, 2)
        self.assertEqual(self.page_changes, [2])

    async def test_highlight_on_other_page_requests_page(self):
        await self.surface.open()
        target = HighlightTarget("localWages", "W-2", 2, BoundingBox(0.1, 0.5, 0.3, 0.05), 0.75)

        self.surface.reconfigure(highlighted_field=target)

        self.assertEqual(self.surface.viewport.page_number, 2)

    async def test_new_source_requires_reload(self):
        await self.surface.open()

        self.surface.reconfigure(pdf_source=DocumentSource.from_storage("sub-1", "doc-2"))

        self.assertTrue(self.surface.needs_reload)
        self.assertEqual(self.surface.config.source.kind, SourceKind.STORAGE)

    def test_unknown_option_rejected(self):
        with self.assertRaises(ValueError):
            self.surface.reconfigure(zoom=2)

    async def test_render_paints_overlay(self):
        await self.surface.open()
        self.surface.reconfigure(highlighted_field=HighlightTarget(
            "federalWages", "W-2", 1, BoundingBox(0.1, 0.2, 0.3, 0.05), 0.95))
        self.surface.viewport.set_zoom(2.0)

        composite = await self.surface.render(show_tooltip=True)

        self.assertEqual(composite.page_number, 1)
        self.assertEqual(composite.image.size, (800, 1000))
        self.assertEqual(composite.scene.active.field_name, "federalWages")
        self.assertIsNotNone(composite.scene.tooltip)
        self.assertTrue(composite.to_png().startswith(b"\x89PNG"))

    async def test_render_before_open(self):
        self.assertIsNone(await self.surface.render())


if __name__ == '__main__':
    unittest.main()
