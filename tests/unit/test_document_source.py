"""
Unit tests for document byte sources.
"""

import base64
import unittest
from unittest.mock import MagicMock, patch

import httpx
from azure.core.exceptions import ResourceNotFoundError

from field_provenance.core.models import DocumentSource, SourceKind
from field_provenance.viewer.document_source import (
    AzureBlobDocumentStore,
    DocumentLoader,
    DocumentLoadError,
    SubmissionDocument,
    SubmissionDocumentClient,
    create_document_store,
    decode_inline,
)

PDF_BYTES = b"%PDF-1.7 test document"
PDF_BASE64 = base64.b64encode(PDF_BYTES).decode("ascii")


class TestInlineSources(unittest.TestCase):

    def test_decode_raw_base64(self):
        self.assertEqual(decode_inline(PDF_BASE64), PDF_BYTES)

    def test_decode_data_url(self):
        self.assertEqual(decode_inline(f"data:application/pdf;base64,{PDF_BASE64}"), PDF_BYTES)

    def test_invalid_inline_data(self):
        with self.assertRaises(DocumentLoadError):
            decode_inline("not base64 at all!")
        with self.assertRaises(DocumentLoadError):
            decode_inline("")
        with self.assertRaises(DocumentLoadError):
            decode_inline("data:application/pdf,plain")

    def test_source_classification(self):
        self.assertEqual(DocumentSource.from_pdf_source(PDF_BASE64).kind, SourceKind.INLINE_BASE64)
        self.assertEqual(DocumentSource.from_pdf_source("data:application/pdf;base64,AA==").kind,
                         SourceKind.DATA_URL)
        self.assertEqual(DocumentSource.from_pdf_source("https://docs.example/w2.pdf").kind, SourceKind.URL)
        storage = DocumentSource.from_storage("sub-1", "doc-1")
        self.assertEqual(storage.kind, SourceKind.STORAGE)
        self.assertNotIn(PDF_BASE64, DocumentSource.from_pdf_source(PDF_BASE64).describe())

    def test_submission_document_from_dict(self):
        record = SubmissionDocument.from_dict({
            "id": "doc-1",
            "fileName": "w2.pdf",
            "fieldProvenance": "[]",
            "base64Data": PDF_BASE64,
        })

        self.assertEqual(record.file_name, "w2.pdf")
        self.assertEqual(record.field_provenance, "[]")
        with self.assertRaises(ValueError):
            SubmissionDocument.from_dict({"fileName": "w2.pdf"})


class TestSubmissionDocumentClient(unittest.IsolatedAsyncioTestCase):

    def make_client(self, handler):
        return SubmissionDocumentClient(
            "https://portal.example",
            api_token="token-123",
            transport=httpx.MockTransport(handler),
        )

    async def test_fetch_pdf(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, content=PDF_BYTES, headers={"content-type": "application/pdf"})

        client = self.make_client(handler)
        try:
            self.assertEqual(await client.fetch("sub-1", "doc-1"), PDF_BYTES)
        finally:
            await client.aclose()

        self.assertEqual(seen["path"], "/api/v1/submissions/sub-1/documents/doc-1")
        self.assertEqual(seen["auth"], "Bearer token-123")

    async def test_non_pdf_response_uses_inline_fallback(self):
        client = self.make_client(lambda request: httpx.Response(200, json={"status": "queued"}))
        try:
            self.assertEqual(await client.fetch("sub-1", "doc-1", inline_fallback=PDF_BASE64), PDF_BYTES)
            with self.assertRaises(DocumentLoadError):
                await client.fetch("sub-1", "doc-1")
        finally:
            await client.aclose()

    async def test_error_response_fails(self):
        client = self.make_client(lambda request: httpx.Response(404))
        try:
            with self.assertRaises(DocumentLoadError):
                await client.fetch("sub-1", "doc-1", inline_fallback=PDF_BASE64)
        finally:
            await client.aclose()


class TestAzureBlobDocumentStore(unittest.IsolatedAsyncioTestCase):

    @patch('field_provenance.viewer.document_source.BlobServiceClient')
    async def test_fetch_blob(self, mock_blob_service):
        container = mock_blob_service.from_connection_string.return_value.get_container_client.return_value
        container.get_blob_client.return_value.download_blob.return_value.readall.return_value = PDF_BYTES

        store = AzureBlobDocumentStore("documents", connection_string="UseDevelopmentStorage=true")

        self.assertEqual(await store.fetch("sub-1", "doc-1"), PDF_BYTES)
        container.get_blob_client.assert_called_once_with("sub-1/doc-1")

    @patch('field_provenance.viewer.document_source.BlobServiceClient')
    async def test_missing_blob(self, mock_blob_service):
        container = mock_blob_service.from_connection_string.return_value.get_container_client.return_value
        container.get_blob_client.return_value.download_blob.side_effect = ResourceNotFoundError("missing")

        store = AzureBlobDocumentStore("documents", connection_string="UseDevelopmentStorage=true")

        self.assertEqual(await store.fetch("sub-1", "doc-1", inline_fallback=PDF_BASE64), PDF_BYTES)
        with self.assertRaises(DocumentLoadError):
            await store.fetch("sub-1", "doc-1")

    async def test_requires_credentials(self):
        store = AzureBlobDocumentStore("documents")
        with self.assertRaises(DocumentLoadError):
            await store.fetch("sub-1", "doc-1")


class TestDocumentLoader(unittest.IsolatedAsyncioTestCase):

    async def test_inline_source(self):
        loader = DocumentLoader()
        self.assertEqual(await loader.load(DocumentSource.from_pdf_source(PDF_BASE64)), PDF_BYTES)

    async def test_url_source(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(200, content=PDF_BYTES)))
        loader = DocumentLoader(http_client=http_client)
        try:
            source = DocumentSource.from_pdf_source("https://docs.example/w2.pdf")
            self.assertEqual(await loader.load(source), PDF_BYTES)
        finally:
            await http_client.aclose()

    async def test_storage_source_delegates_to_store(self):
        store = MagicMock()

        async def fetch(submission_id, document_id, inline_fallback=None):
            return PDF_BYTES

        store.fetch.side_effect = fetch
        loader = DocumentLoader(store=store)

        self.assertEqual(await loader.load(DocumentSource.from_storage("sub-1", "doc-1"), PDF_BASE64), PDF_BYTES)
        store.fetch.assert_called_once_with("sub-1", "doc-1", PDF_BASE64)

    async def test_storage_source_without_store(self):
        with self.assertRaises(DocumentLoadError):
            await DocumentLoader().load(DocumentSource.from_storage("sub-1", "doc-1"))

    def test_create_document_store(self):
        config = {'storage': {
            'backend': 'api',
            'api_base_url': 'https://portal.example',
            'api_token': None,
            'timeout': 10.0,
        }}
        self.assertIsInstance(create_document_store(config), SubmissionDocumentClient)

        config['storage'].update({
            'backend': 'azure_blob',
            'container_name': 'documents',
            'connection_string': 'UseDevelopmentStorage=true',
        })
        self.assertIsInstance(create_document_store(config), AzureBlobDocumentStore)


if __name__ == '__main__':
    unittest.main()
