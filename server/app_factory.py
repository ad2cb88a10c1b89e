"""Application assembly shared by the API server and the API tests."""

import os
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from server.core.AccessUrlService import AccessUrlService
from server.core.AttachmentService import AttachmentService
from server.core.DocumentService import DocumentService
from server.core.ExtractionService import ExtractionService
from server.core.SearchService import SearchService
from server.dependencies.errors import register_exception_handlers
from server.routers.AttachmentRouter import router as attachment_router
from server.routers.DocumentRouter import router as document_router
from server.routers.HealthRouter import router as health_router
from server.routers.SearchRouter import router as search_router
from shared.clients.blob.BlobClientInterface import BlobClientInterface
from shared.clients.extract.ExtractClientInterface import ExtractClientInterface
from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.helper.HelperBlobKey import BlobKeyGenerator
from shared.helper.HelperConfig import HelperConfig
from shared.logging.ReconciliationLog import ReconciliationLog

app_version = os.getenv("APP_VERSION", "unknown")


def create_app(lifespan: Any = None) -> FastAPI:
    app = FastAPI(
        title="doc_attachment_service",
        description=(
            "Documents with binary attachments held in an object store. "
            "Attachment text is extracted for search, and attachments are served "
            "through time-limited signed URLs."
        ),
        version=app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # /documents/search must be matched before /documents/{document_id}
    app.include_router(search_router)
    app.include_router(document_router)
    app.include_router(attachment_router)
    app.include_router(health_router)
    return app


def wire_services(
    app: FastAPI,
    helper_config: HelperConfig,
    blob_client: BlobClientInterface,
    meta_client: MetaClientInterface,
    extract_clients: list[ExtractClientInterface],
    key_generator: BlobKeyGenerator | None = None,
    reconciliation: ReconciliationLog | None = None,
) -> None:
    """Construct the core services around already booted clients and publish them on app.state."""
    reconciliation = reconciliation or ReconciliationLog()

    app.state.logging = helper_config.get_logger()
    app.state.helper_config = helper_config
    app.state.blob_client = blob_client
    app.state.meta_client = meta_client
    app.state.extract_clients = extract_clients
    app.state.clients = [blob_client, meta_client, *extract_clients]

    access_url_service = AccessUrlService(helper_config=helper_config, blob_client=blob_client)
    extraction_service = ExtractionService(
        helper_config=helper_config,
        blob_client=blob_client,
        meta_client=meta_client,
        extract_clients=extract_clients,
        reconciliation=reconciliation,
    )
    app.state.access_url_service = access_url_service
    app.state.extraction_service = extraction_service
    app.state.attachment_service = AttachmentService(
        helper_config=helper_config,
        blob_client=blob_client,
        meta_client=meta_client,
        extraction_service=extraction_service,
        access_url_service=access_url_service,
        key_generator=key_generator,
        reconciliation=reconciliation,
    )
    app.state.document_service = DocumentService(
        helper_config=helper_config,
        meta_client=meta_client,
        access_url_service=access_url_service,
    )
    app.state.search_service = SearchService(helper_config=helper_config, meta_client=meta_client)
