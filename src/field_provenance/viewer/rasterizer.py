"""
Page Rasterizer

Turns PDF pages into Pillow images. Rasterization is the slow, asynchronous
part of the viewer: pdf2image (poppler) runs in the default thread pool so the
event loop keeps serving navigation while a page renders.
"""

import asyncio
import logging
from typing import Protocol

from PIL import Image
from pdf2image import convert_from_bytes, pdfinfo_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError

from .document_source import DocumentLoadError

logger = logging.getLogger(__name__)


class PageRasterizer(Protocol):
    """Anything that can count and draw the pages of a document."""

    async def count_pages(self, document: bytes) -> int:
        ...

    async def render_page(self, document: bytes, page_number: int) -> Image.Image:
        ...


class Pdf2ImageRasterizer:
    """Rasterizes PDF pages with pdf2image at a fixed base DPI."""

    def __init__(self, dpi: int = 100):
        """
        Initialize the rasterizer.

        Args:
            dpi: Resolution of the unzoomed page raster
        """
        self.dpi = dpi

    def _count_pages(self, document: bytes) -> int:
        try:
            info = pdfinfo_from_bytes(document)
        except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as e:
            raise DocumentLoadError(f"Cannot read PDF: {e}") from e
        pages = int(info.get("Pages", 0))
        if pages < 1:
            raise DocumentLoadError("PDF has no pages")
        return pages

    def _render_page(self, document: bytes, page_number: int) -> Image.Image:
        try:
            images = convert_from_bytes(
                document,
                dpi=self.dpi,
                first_page=page_number,
                last_page=page_number,
            )
        except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as e:
            raise DocumentLoadError(f"Cannot render page {page_number}: {e}") from e
        if not images:
            raise DocumentLoadError(f"Page {page_number} produced no image")
        return images[0].convert("RGB")

    async def count_pages(self, document: bytes) -> int:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._count_pages, document)

    async def render_page(self, document: bytes, page_number: int) -> Image.Image:
        loop = asyncio.get_running_loop()
        image = await loop.run_in_executor(None, self._render_page, document, page_number)
        logger.debug(f"Rendered page {page_number} at {self.dpi} dpi: {image.size[0]}x{image.size[1]}")
        return image
