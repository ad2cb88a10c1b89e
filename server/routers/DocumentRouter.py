from fastapi import APIRouter, Depends, Query, Request

from server.core.DocumentService import DEFAULT_LIST_LIMIT
from server.dependencies.auth import get_identity, verify_api_key
from server.models.requests import CreateDocumentRequest
from server.models.responses import DocumentResponse, DocumentSummaryResponse, SignedUrlResponse
from shared.models.identity import Identity

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("", status_code=201, response_model=DocumentResponse)
async def create_document(
    request: Request,
    body: CreateDocumentRequest,
    _: None = Depends(verify_api_key),
    identity: Identity = Depends(get_identity),
) -> DocumentResponse:
    document_service = request.app.state.document_service
    document = await document_service.create_document(body.title)
    return DocumentResponse.from_document(document)


@router.get("", response_model=list[DocumentSummaryResponse])
async def list_documents(
    request: Request,
    limit: int = Query(default=DEFAULT_LIST_LIMIT),
    _: None = Depends(verify_api_key),
    identity: Identity = Depends(get_identity),
) -> list[DocumentSummaryResponse]:
    document_service = request.app.state.document_service
    documents = await document_service.list_documents(limit)
    return [DocumentSummaryResponse.from_document(document) for document in documents]


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    request: Request,
    document_id: str,
    _: None = Depends(verify_api_key),
    identity: Identity = Depends(get_identity),
) -> DocumentResponse:
    """Return a document with a freshly signed URL per attachment."""
    document_service = request.app.state.document_service
    document, items = await document_service.get_document(document_id)
    return DocumentResponse.from_document(document, items)


@router.get("/{document_id}/signedUrls", response_model=list[SignedUrlResponse])
async def get_signed_urls(
    request: Request,
    document_id: str,
    inline: bool = Query(default=True),
    _: None = Depends(verify_api_key),
    identity: Identity = Depends(get_identity),
) -> list[SignedUrlResponse]:
    """Issue one-hour signed URLs for every attachment of a document.

    Args:
        request (Request): FastAPI request (provides app.state.document_service).
        document_id (str): The document.
        inline (bool): Serve PDFs inline (Content-Type application/pdf, Content-Disposition inline).

    Returns:
        list[SignedUrlResponse]: One entry per attachment; failed presigns carry an error instead of a URL.
    """
    document_service = request.app.state.document_service
    items = await document_service.signed_urls(document_id, inline_pdf=inline)
    return [SignedUrlResponse.from_item(item) for item in items]
