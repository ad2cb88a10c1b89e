from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Attachment, Document, TextSegment


class MetaClientInterface(ClientInterface):
    """Metadata store for Document records.

    Engines must make append, remove and compare-and-set atomic per document so
    that concurrent requests on the same document never lose an update. Every
    mutation bumps Document.revision.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "meta"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_create_document(self, title: str) -> Document:
        """Create an empty document (no attachments, empty full text)."""
        return await self._with_deadline(self._create_document(title), "create")

    async def do_fetch_document(self, document_id: str) -> Document:
        """Fetch a document by id.

        Raises:
            NotFoundError: If the document does not exist.
            UpstreamError: On timeout or backend failure.
        """
        return await self._with_deadline(self._fetch_document(document_id), "fetch", document_id=document_id)

    async def do_list_documents(self, limit: int = 100) -> list[Document]:
        """List documents, newest first."""
        return await self._with_deadline(self._list_documents(limit), "list")

    async def do_append_attachments(self, document_id: str, attachments: list[Attachment]) -> Document:
        """Append attachments to the end of the document's sequence in one atomic update.

        Returns:
            Document: The document after the update.

        Raises:
            NotFoundError: If the document does not exist.
            UpstreamError: On timeout or backend failure.
        """
        return await self._with_deadline(
            self._append_attachments(document_id, attachments),
            "append",
            document_id=document_id,
            blob_keys=[a.blob_key for a in attachments],
        )

    async def do_remove_attachment(self, document_id: str, attachment_id: str) -> Document:
        """Remove one attachment entry in one atomic update. full_text is left untouched.

        Raises:
            NotFoundError: If the document does not exist.
            UpstreamError: On timeout or backend failure.
        """
        return await self._with_deadline(
            self._remove_attachment(document_id, attachment_id), "remove", document_id=document_id
        )

    async def do_compare_and_set_full_text(
        self,
        document_id: str,
        full_text: str,
        expected_revision: int,
        text_segments: list[TextSegment] | None = None,
    ) -> bool:
        """Replace full_text only if the document is still at expected_revision.

        Args:
            text_segments (list[TextSegment] | None): Per-attachment texts written in the
                same update as full_text. None leaves the stored segments unchanged.

        Returns:
            bool: False if another mutation happened in between.
        """
        return await self._with_deadline(
            self._compare_and_set_full_text(document_id, full_text, expected_revision, text_segments),
            "set_full_text",
            document_id=document_id,
        )

    async def do_search_candidates(self, terms: list[str], limit: int = 200) -> list[Document]:
        """Return documents whose title or full text contains any of the terms (case-insensitive).

        Every title match is returned. limit only caps the documents that match
        in full text alone, and those are taken newest first.
        """
        return await self._with_deadline(self._search_candidates(terms, limit), "search")

    ##########################################
    ############ ENGINE PRIMITIVES ###########
    ##########################################

    @abstractmethod
    async def _create_document(self, title: str) -> Document:
        pass

    @abstractmethod
    async def _fetch_document(self, document_id: str) -> Document:
        pass

    @abstractmethod
    async def _list_documents(self, limit: int) -> list[Document]:
        pass

    @abstractmethod
    async def _append_attachments(self, document_id: str, attachments: list[Attachment]) -> Document:
        pass

    @abstractmethod
    async def _remove_attachment(self, document_id: str, attachment_id: str) -> Document:
        pass

    @abstractmethod
    async def _compare_and_set_full_text(
        self,
        document_id: str,
        full_text: str,
        expected_revision: int,
        text_segments: list[TextSegment] | None,
    ) -> bool:
        pass

    @abstractmethod
    async def _search_candidates(self, terms: list[str], limit: int) -> list[Document]:
        pass
