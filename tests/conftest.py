"""
Shared fixtures for the service and API tests.

All tests run against the in-memory blob and metadata engines; extraction is
either the real pypdf engine or a scripted fake with per-file delays and
failures.
"""

import asyncio
import logging

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from server.app_factory import create_app, wire_services
from server.core.AccessUrlService import AccessUrlService
from server.core.AttachmentService import AttachmentService
from server.core.DocumentService import DocumentService
from server.core.ExtractionService import ExtractionService
from server.core.SearchService import SearchService
from shared.clients.blob.memory.BlobClientMemory import BlobClientMemory
from shared.clients.extract.ExtractClientInterface import ExtractClientInterface
from shared.clients.meta.memory.MetaClientMemory import MetaClientMemory
from shared.helper.HelperBlobKey import BlobKeyGenerator
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.document import PDF_MIME_TYPE

API_KEY = "test-api-key"


# =============================================================================
# TEST DOUBLES
# =============================================================================


class FakeExtractor(ExtractClientInterface):
    """Returns the file bytes as text, after an optional per-filename delay."""

    def __init__(self, helper_config: HelperConfig, delays: dict | None = None, failures: tuple = ()):
        super().__init__(helper_config=helper_config)
        self.delays = delays or {}
        self.failures = set(failures)
        self.calls: list[str] = []

    def _get_engine_name(self) -> str:
        return "Fake"

    def _get_supported_mime_types(self) -> list[str]:
        return [PDF_MIME_TYPE]

    def _get_required_config(self) -> list[EnvConfig]:
        return []

    async def do_healthcheck(self) -> bool:
        return True

    async def _extract(self, data: bytes, filename: str, mime_type: str) -> str:
        self.calls.append(filename)
        await asyncio.sleep(self.delays.get(filename, 0))
        if filename in self.failures:
            raise RuntimeError(f"cannot parse {filename}")
        return data.decode()


class FlakyBlobClient(BlobClientMemory):
    """Memory blob store whose operations fail, or puts stall, for keys containing a marker."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.fail_put_marker: str | None = None
        self.fail_delete = False
        self.fail_presign_marker: str | None = None
        self.hold_put_marker: str | None = None
        self.put_released = asyncio.Event()

    async def _put(self, blob_key: str, data: bytes, content_type: str) -> None:
        if self.hold_put_marker and self.hold_put_marker in blob_key:
            await self.put_released.wait()
        if self.fail_put_marker and self.fail_put_marker in blob_key:
            raise RuntimeError("connection reset by peer")
        await super()._put(blob_key, data, content_type)

    async def _delete(self, blob_key: str) -> None:
        if self.fail_delete:
            raise RuntimeError("service unavailable")
        await super()._delete(blob_key)

    async def _presign(self, blob_key, ttl_seconds, content_type, content_disposition) -> str:
        if self.fail_presign_marker and self.fail_presign_marker in blob_key:
            raise RuntimeError("credentials expired")
        return await super()._presign(blob_key, ttl_seconds, content_type, content_disposition)


class FlakyMetaClient(MetaClientMemory):
    """Memory metadata store whose append or remove can be switched to fail."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.fail_append = False
        self.fail_remove = False

    async def _append_attachments(self, document_id, attachments):
        if self.fail_append:
            raise RuntimeError("write concern timeout")
        return await super()._append_attachments(document_id, attachments)

    async def _remove_attachment(self, document_id, attachment_id):
        if self.fail_remove:
            raise RuntimeError("write concern timeout")
        return await super()._remove_attachment(document_id, attachment_id)


def make_pdf(text: str) -> bytes:
    """Build a one-page PDF showing `text` in Helvetica, with a valid xref table."""
    stream = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 5 0 R >> >> /Contents 4 0 R >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"
    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode()
    return bytes(out)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def helper_config(monkeypatch) -> HelperConfig:
    monkeypatch.setenv("API_SERVER_API_KEY", API_KEY)
    monkeypatch.setenv("BLOB_MEMORY_SIGNING_KEY", "test-signing-key")
    return HelperConfig(logger=logging.getLogger("tests"))


@pytest.fixture
def blob_client(helper_config) -> FlakyBlobClient:
    return FlakyBlobClient(helper_config=helper_config)


@pytest.fixture
def meta_client(helper_config) -> FlakyMetaClient:
    return FlakyMetaClient(helper_config=helper_config)


@pytest.fixture
def extractor(helper_config) -> FakeExtractor:
    return FakeExtractor(helper_config=helper_config)


@pytest.fixture
def access_url_service(helper_config, blob_client) -> AccessUrlService:
    return AccessUrlService(helper_config=helper_config, blob_client=blob_client)


@pytest.fixture
def extraction_service(helper_config, blob_client, meta_client, extractor) -> ExtractionService:
    return ExtractionService(
        helper_config=helper_config,
        blob_client=blob_client,
        meta_client=meta_client,
        extract_clients=[extractor],
    )


@pytest.fixture
def key_generator() -> BlobKeyGenerator:
    return BlobKeyGenerator()


@pytest.fixture
def attachment_service(
    helper_config, blob_client, meta_client, extraction_service, access_url_service, key_generator
) -> AttachmentService:
    return AttachmentService(
        helper_config=helper_config,
        blob_client=blob_client,
        meta_client=meta_client,
        extraction_service=extraction_service,
        access_url_service=access_url_service,
        key_generator=key_generator,
    )


@pytest.fixture
def document_service(helper_config, meta_client, access_url_service) -> DocumentService:
    return DocumentService(helper_config=helper_config, meta_client=meta_client, access_url_service=access_url_service)


@pytest.fixture
def search_service(helper_config, meta_client) -> SearchService:
    return SearchService(helper_config=helper_config, meta_client=meta_client)


@pytest.fixture
def api_app(helper_config, blob_client, meta_client, extractor) -> FastAPI:
    app = create_app()
    wire_services(
        app,
        helper_config=helper_config,
        blob_client=blob_client,
        meta_client=meta_client,
        extract_clients=[extractor],
    )
    return app


@pytest_asyncio.fixture
async def api_client(api_app: FastAPI) -> AsyncClient:
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-Api-Key": API_KEY, "X-User-Id": "alice", "X-User-Role": "user"}
