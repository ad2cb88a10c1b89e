import asyncio
import uuid
from collections import defaultdict

from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.document import Attachment, Document, TextSegment, utc_now
from shared.models.errors import NotFoundError


class MetaClientMemory(MetaClientInterface):
    """In-process metadata store for local development and tests.

    Mutations of one document are serialized by a per-document asyncio.Lock.
    Callers always receive copies, never the stored objects.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._documents: dict[str, Document] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Memory"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return []

    async def do_healthcheck(self) -> bool:
        return True

    def _get_stored(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError("Document not found", resource_type="document", resource_id=document_id)
        return document

    ##########################################
    ############ ENGINE PRIMITIVES ###########
    ##########################################

    async def _create_document(self, title: str) -> Document:
        document = Document(id=uuid.uuid4().hex, title=title)
        self._documents[document.id] = document
        return document.model_copy(deep=True)

    async def _fetch_document(self, document_id: str) -> Document:
        return self._get_stored(document_id).model_copy(deep=True)

    async def _list_documents(self, limit: int) -> list[Document]:
        documents = sorted(self._documents.values(), key=lambda d: d.created_at, reverse=True)
        return [d.model_copy(deep=True) for d in documents[:limit]]

    async def _append_attachments(self, document_id: str, attachments: list[Attachment]) -> Document:
        async with self._locks[document_id]:
            document = self._get_stored(document_id)
            document.attachments.extend(att.model_copy(deep=True) for att in attachments)
            document.updated_at = utc_now()
            document.revision += 1
            return document.model_copy(deep=True)

    async def _remove_attachment(self, document_id: str, attachment_id: str) -> Document:
        async with self._locks[document_id]:
            document = self._get_stored(document_id)
            document.attachments = [att for att in document.attachments if att.id != attachment_id]
            document.updated_at = utc_now()
            document.revision += 1
            return document.model_copy(deep=True)

    async def _compare_and_set_full_text(
        self,
        document_id: str,
        full_text: str,
        expected_revision: int,
        text_segments: list[TextSegment] | None,
    ) -> bool:
        async with self._locks[document_id]:
            document = self._get_stored(document_id)
            if document.revision != expected_revision:
                return False
            document.full_text = full_text
            if text_segments is not None:
                document.text_segments = [seg.model_copy() for seg in text_segments]
            document.updated_at = utc_now()
            document.revision += 1
            return True

    async def _search_candidates(self, terms: list[str], limit: int) -> list[Document]:
        lowered = [term.lower() for term in terms]
        title_matches = []
        text_matches = []
        for document in self._documents.values():
            if any(term in document.title.lower() for term in lowered):
                title_matches.append(document)
            elif any(term in document.full_text.lower() for term in lowered):
                text_matches.append(document)
        text_matches.sort(key=lambda doc: doc.created_at, reverse=True)
        return [doc.model_copy(deep=True) for doc in title_matches + text_matches[:limit]]
