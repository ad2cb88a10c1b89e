import mimetypes

from fastapi import APIRouter, Depends, File, Request
from fastapi import UploadFile as MultipartFile

from server.dependencies.auth import get_identity, verify_api_key
from server.models.responses import SignedUrlResponse
from shared.models.document import UploadFile
from shared.models.identity import Identity

router = APIRouter(prefix="/documents/{document_id}/attachments", tags=["attachments"])

DEFAULT_MIME_TYPE = "application/octet-stream"


async def _read_upload(part: MultipartFile) -> UploadFile:
    filename = part.filename or ""
    mime_type = part.content_type or mimetypes.guess_type(filename)[0] or DEFAULT_MIME_TYPE
    content = await part.read()
    return UploadFile(filename=filename, mime_type=mime_type, content=content)


@router.post("", status_code=201, response_model=list[SignedUrlResponse])
async def add_attachments(
    request: Request,
    document_id: str,
    file: list[MultipartFile] = File(...),
    _: None = Depends(verify_api_key),
    identity: Identity = Depends(get_identity),
) -> list[SignedUrlResponse]:
    """Upload 1..5 files (multipart field "file") and attach them to a document.

    Args:
        request (Request): FastAPI request (provides app.state.attachment_service).
        document_id (str): The target document.
        file (list[MultipartFile]): The uploaded parts, in submission order.

    Returns:
        list[SignedUrlResponse]: One entry per new attachment, in submission order.
    """
    attachment_service = request.app.state.attachment_service
    try:
        files = [await _read_upload(part) for part in file]
    finally:
        for part in file:
            await part.close()
    added = await attachment_service.add_attachments(document_id, files, uploader_id=identity.user_id)
    return [SignedUrlResponse.from_item(entry.signed_url) for entry in added]


@router.delete("/{attachment_id}")
async def remove_attachment(
    request: Request,
    document_id: str,
    attachment_id: str,
    _: None = Depends(verify_api_key),
    identity: Identity = Depends(get_identity),
) -> dict:
    """Remove an attachment. Only admins and the attachment owner may do so."""
    attachment_service = request.app.state.attachment_service
    await attachment_service.remove_attachment(document_id, attachment_id, identity)
    return {"status": "ok", "attachmentId": attachment_id}
