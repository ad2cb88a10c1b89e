from server.core.AccessUrlService import AccessUrlService
from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document, SignedUrlItem
from shared.models.errors import ValidationError

MAX_TITLE_LENGTH = 500
DEFAULT_LIST_LIMIT = 100


class DocumentService:
    """Document metadata operations and signed URL listing."""

    def __init__(self, helper_config: HelperConfig, meta_client: MetaClientInterface, access_url_service: AccessUrlService) -> None:
        self.logging = helper_config.get_logger()
        self._meta_client = meta_client
        self._access_url_service = access_url_service

    async def create_document(self, title: str) -> Document:
        """Create an empty document.

        Raises:
            ValidationError: If the title is blank or too long.
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title must not be blank", details={"field": "title"})
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters", details={"field": "title"})
        document = await self._meta_client.do_create_document(title)
        self.logging.info("Created document %s.", document.id)
        return document

    async def list_documents(self, limit: int = DEFAULT_LIST_LIMIT) -> list[Document]:
        if limit < 1:
            raise ValidationError("limit must be positive", details={"parameter": "limit"})
        return await self._meta_client.do_list_documents(limit)

    async def get_document(self, document_id: str, inline_pdf: bool = True) -> tuple[Document, list[SignedUrlItem]]:
        """Fetch a document together with a fresh signed URL per attachment."""
        document = await self._meta_client.do_fetch_document(document_id)
        items = await self._access_url_service.issue_for_attachments(document.attachments, inline_pdf=inline_pdf)
        return document, items

    async def signed_urls(self, document_id: str, inline_pdf: bool = True) -> list[SignedUrlItem]:
        """Presign every attachment of a document, in attachment order.

        PDFs get inline display overrides unless inline_pdf is False.

        Raises:
            NotFoundError: If the document does not exist.
        """
        document = await self._meta_client.do_fetch_document(document_id)
        return await self._access_url_service.issue_for_attachments(document.attachments, inline_pdf=inline_pdf)
