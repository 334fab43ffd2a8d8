"""
Document Sources

Obtains the bytes of a source document for the viewer. Documents arrive
either inline (raw base64 or a data URL), as a remote http(s) URL, or from
document storage keyed by ``(submission_id, document_id)``:

- ``SubmissionDocumentClient``: the portal's document endpoint over HTTP (httpx)
- ``AzureBlobDocumentStore``: blobs named ``{submission_id}/{document_id}``

All failures surface as ``DocumentLoadError`` so the viewport can move to its
failed state and offer a retry.
"""

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx
from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient

from ..core.models import DocumentSource, SourceKind

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class DocumentLoadError(Exception):
    """The document bytes could not be obtained or decoded."""


@dataclass(frozen=True)
class SubmissionDocument:
    """A document record as listed for a submission by the portal."""
    id: str
    file_name: str
    field_provenance: Any = None
    base64_data: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubmissionDocument":
        document_id = data.get("id")
        if not document_id:
            raise ValueError("Document record requires an 'id'")
        return cls(
            id=str(document_id),
            file_name=str(data.get("fileName") or data.get("file_name") or document_id),
            field_provenance=data.get("fieldProvenance", data.get("field_provenance")),
            base64_data=data.get("base64Data", data.get("base64_data")),
        )


def decode_inline(payload: str) -> bytes:
    """Decode raw base64 or a ``data:...;base64,`` URL."""
    text = payload.strip()
    if text.startswith("data:"):
        header, _, text = text.partition(",")
        if ";base64" not in header:
            raise DocumentLoadError("Only base64 data URLs are supported")
    if not text:
        raise DocumentLoadError("Inline document data is empty")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DocumentLoadError(f"Inline document data is not valid base64: {e}") from e


class DocumentStore(Protocol):
    """Document storage collaborator."""

    async def fetch(
        self,
        submission_id: str,
        document_id: str,
        inline_fallback: Optional[str] = None,
    ) -> bytes:
        ...


class SubmissionDocumentClient:
    """Fetches submission documents from the portal API."""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Portal base URL, e.g. ``https://portal.example.gov``
            api_token: Optional bearer token
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use ``httpx.MockTransport``)
        """
        headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def document_path(submission_id: str, document_id: str) -> str:
        return f"/api/v1/submissions/{submission_id}/documents/{document_id}"

    async def fetch(
        self,
        submission_id: str,
        document_id: str,
        inline_fallback: Optional[str] = None,
    ) -> bytes:
        """
        Download a document.

        A non-PDF response falls back to the record's inline base64 data when
        present; an error response always fails.
        """
        path = self.document_path(submission_id, document_id)
        try:
            response = await self.client.get(path)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error fetching document {document_id}: {e}")
            raise DocumentLoadError("Failed to load document") from e

        content_type = response.headers.get("content-type", "")
        if PDF_CONTENT_TYPE in content_type:
            logger.info(f"Fetched document {document_id} ({len(response.content)} bytes)")
            return response.content

        if inline_fallback:
            logger.info(f"Document {document_id} served as {content_type or 'unknown type'}, using inline data")
            return decode_inline(inline_fallback)

        raise DocumentLoadError("Document is not a PDF or no data available")

    async def aclose(self):
        await self.client.aclose()


class AzureBlobDocumentStore:
    """Reads submission documents from an Azure Storage container."""

    def __init__(
        self,
        container_name: str,
        connection_string: Optional[str] = None,
        account_name: Optional[str] = None,
        use_managed_identity: bool = False,
    ):
        self.container_name = container_name
        self.connection_string = connection_string
        self.account_name = account_name
        self.use_managed_identity = use_managed_identity
        self._container_client = None

    def _get_container_client(self):
        if self._container_client is None:
            if self.connection_string and not self.use_managed_identity:
                service_client = BlobServiceClient.from_connection_string(self.connection_string)
                logger.info("Using connection string authentication")
            elif self.account_name:
                account_url = f"https://{self.account_name}.blob.core.windows.net"
                service_client = BlobServiceClient(
                    account_url=account_url,
                    credential=DefaultAzureCredential(),
                )
                logger.info("Using Azure Identity authentication")
            else:
                raise DocumentLoadError(
                    "Either connection_string or account_name with managed identity must be provided")
            self._container_client = service_client.get_container_client(self.container_name)
        return self._container_client

    @staticmethod
    def blob_name(submission_id: str, document_id: str) -> str:
        return f"{submission_id}/{document_id}"

    def _download(self, blob_name: str) -> bytes:
        blob_client = self._get_container_client().get_blob_client(blob_name)
        return blob_client.download_blob().readall()

    async def fetch(
        self,
        submission_id: str,
        document_id: str,
        inline_fallback: Optional[str] = None,
    ) -> bytes:
        blob_name = self.blob_name(submission_id, document_id)
        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, self._download, blob_name)
        except ResourceNotFoundError as e:
            if inline_fallback:
                logger.warning(f"Blob '{blob_name}' not found, using inline data")
                return decode_inline(inline_fallback)
            raise DocumentLoadError(f"Document '{blob_name}' not found") from e
        except AzureError as e:
            logger.error(f"Error downloading blob '{blob_name}': {e}")
            raise DocumentLoadError("Failed to load document") from e

        logger.info(f"Downloaded '{blob_name}' ({len(data)} bytes)")
        return data


def create_document_store(config: Dict[str, Any]) -> DocumentStore:
    """Build the storage adapter selected by the ``storage`` config section."""
    storage = config['storage']
    if storage['backend'] == 'azure_blob':
        return AzureBlobDocumentStore(
            container_name=storage['container_name'],
            connection_string=storage.get('connection_string'),
            account_name=storage.get('account_name'),
            use_managed_identity=storage.get('enable_managed_identity', False),
        )
    return SubmissionDocumentClient(
        base_url=storage['api_base_url'],
        api_token=storage.get('api_token'),
        timeout=storage.get('timeout', 30.0),
    )


class DocumentLoader:
    """Resolves any ``DocumentSource`` to bytes."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.store = store
        self._http_client = http_client
        self._owns_client = http_client is None
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._http_client

    async def load(self, source: DocumentSource, inline_fallback: Optional[str] = None) -> bytes:
        """
        Fetch the bytes behind a source.

        Args:
            source: Where the document lives
            inline_fallback: Base64 data to use when storage serves no PDF

        Returns:
            Raw document bytes
        """
        logger.debug(f"Loading document from {source.describe()}")
        if source.kind in (SourceKind.INLINE_BASE64, SourceKind.DATA_URL):
            return decode_inline(source.value)

        if source.kind is SourceKind.URL:
            try:
                response = await self._client().get(source.value)
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Error fetching {source.value}: {e}")
                raise DocumentLoadError("Failed to load document") from e
            return response.content

        if self.store is None:
            raise DocumentLoadError("No document store configured for storage sources")
        return await self.store.fetch(source.submission_id, source.document_id, inline_fallback)

    async def aclose(self):
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        if isinstance(self.store, SubmissionDocumentClient):
            await self.store.aclose()
