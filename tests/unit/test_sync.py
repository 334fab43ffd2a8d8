"""
Unit tests for highlight synchronization between the field panel and viewer.
"""

import asyncio
import unittest

from PIL import Image

from field_provenance.core.models import (
    BoundingBox,
    DocumentSource,
    ExtractedDocument,
    FieldProvenance,
    FormProvenance,
    HighlightGranularity,
    LoadState,
)
from field_provenance.viewer.sync import SynchronizationController
from field_provenance.viewer.viewport import ViewportController


class FakeRasterizer:

    def __init__(self):
        self.render_error = None

    async def count_pages(self, document):
        return 3

    async def render_page(self, document, page_number):
        if self.render_error:
            raise self.render_error
        return Image.new("RGB", (600, 800), "white")


def returning(data):
    async def fetch():
        return data
    return fetch


def make_document(document_id="doc-1", provenance=None):
    if provenance is None:
        provenance = (
            FormProvenance(
                form_type="W-2",
                page_number=1,
                bounding_box=BoundingBox(0.05, 0.05, 0.9, 0.6),
                form_confidence=0.88,
                fields=(
                    FieldProvenance("federalWages", 1, BoundingBox(0.1, 0.2, 0.3, 0.05), 0.95),
                    FieldProvenance("localWages", 3, BoundingBox(0.1, 0.6, 0.3, 0.05), 0.65),
                ),
            ),
        )
    return ExtractedDocument(
        id=document_id,
        file_name=f"{document_id}.pdf",
        byte_source=DocumentSource.from_storage("sub-1", document_id),
        provenance=tuple(provenance),
    )


class TestSynchronizationController(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.rasterizer = FakeRasterizer()
        self.viewport = ViewportController(self.rasterizer)
        self.sync = SynchronizationController(self.viewport)
        self.changes = []
        self.sync.add_highlight_listener(self.changes.append)

        self.sync.switch_document(make_document())
        token = self.viewport.begin_load("doc-1")
        await self.viewport.load(token, returning(b"pdf"))

    async def test_select_field_highlights_and_navigates(self):
        target = self.sync.select_field("localWages", "W-2")

        self.assertEqual(self.sync.highlight, target)
        self.assertEqual(target.granularity, HighlightGranularity.FIELD)
        self.assertEqual(self.viewport.page_number, 3)
        self.assertEqual(self.changes, [target])

    async def test_selecting_another_field_replaces_highlight(self):
        self.sync.select_field("localWages", "W-2")
        second = self.sync.select_field("federalWages", {"formType": "W-2"})

        self.assertEqual(self.sync.highlight, second)
        self.assertEqual(self.sync.highlight.field_name, "federalWages")
        self.assertEqual(self.viewport.page_number, 1)

    async def test_field_without_source_clears_highlight(self):
        self.sync.select_field("federalWages", "W-2")

        self.assertIsNone(self.sync.select_field("payer", "1099-NEC"))
        self.assertIsNone(self.sync.highlight)
        self.assertEqual(self.changes[-1], None)

    async def test_on_field_click(self):
        self.assertIsNone(self.sync.on_field_click("federalWages", "W-2"))
        self.assertEqual(self.sync.highlight.field_name, "federalWages")

    async def test_clear_highlight_leaves_viewport(self):
        self.sync.select_field("localWages", "W-2")
        self.sync.clear_highlight()

        self.assertIsNone(self.sync.highlight)
        self.assertEqual(self.viewport.page_number, 3)

    async def test_switch_document_clears_highlight(self):
        self.sync.select_field("federalWages", "W-2")

        self.sync.switch_document(make_document("doc-2", provenance=()))

        self.assertIsNone(self.sync.highlight)
        self.assertEqual(self.sync.document.id, "doc-2")
        self.assertEqual(self.sync.forms, ())
        self.assertIsNone(self.sync.select_field("federalWages", "W-2"))

    async def test_refresh_document_keeps_highlight(self):
        target = self.sync.select_field("federalWages", "W-2")

        self.assertTrue(self.sync.refresh_document(make_document("doc-1")))
        self.assertEqual(self.sync.highlight, target)
        self.assertFalse(self.sync.refresh_document(make_document("doc-9")))
        self.assertEqual(self.sync.document.id, "doc-1")

    async def test_selection_during_loading_navigates_once_ready(self):
        release = asyncio.Event()

        async def slow_fetch():
            await release.wait()
            return b"pdf"

        self.sync.switch_document(make_document("doc-2"))
        token = self.viewport.begin_load("doc-2")
        task = asyncio.create_task(self.viewport.load(token, slow_fetch))
        await asyncio.sleep(0)

        self.sync.select_field("localWages", "W-2")
        self.assertEqual(self.viewport.page_number, 1)

        release.set()
        self.assertTrue(await task)
        self.assertEqual(self.viewport.page_number, 3)

    async def test_retry_keeps_page_chosen_after_selection(self):
        self.sync.select_field("localWages", "W-2")
        self.viewport.request_page(1)

        self.rasterizer.render_error = RuntimeError("poppler crashed")
        self.assertIsNone(await self.viewport.render_current_page())
        self.assertEqual(self.viewport.load_state, LoadState.FAILED)

        self.rasterizer.render_error = None
        self.assertTrue(await self.viewport.retry())
        self.assertEqual(self.viewport.page_number, 1)
        self.assertEqual(self.sync.highlight.page_number, 3)


if __name__ == '__main__':
    unittest.main()
