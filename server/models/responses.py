from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from shared.models.document import Attachment, Document, SignedUrlItem
from shared.models.search import SearchHit


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignedUrlResponse(CamelModel):
    attachment_id: str
    title: str
    signed_url: str | None
    expires_at: datetime | None = None
    error: str | None = None

    @classmethod
    def from_item(cls, item: SignedUrlItem) -> "SignedUrlResponse":
        return cls(
            attachment_id=item.attachment_id,
            title=item.title,
            signed_url=item.signed_url,
            expires_at=item.expires_at,
            error=item.error,
        )


class AttachmentResponse(CamelModel):
    id: str
    title: str
    owner_user_id: str
    blob_key: str
    mime_type: str
    created_at: datetime
    signed_url: str | None = None
    error: str | None = None

    @classmethod
    def from_attachment(cls, attachment: Attachment, item: SignedUrlItem | None = None) -> "AttachmentResponse":
        return cls(
            id=attachment.id,
            title=attachment.title,
            owner_user_id=attachment.owner_user_id,
            blob_key=attachment.blob_key,
            mime_type=attachment.mime_type,
            created_at=attachment.created_at,
            signed_url=item.signed_url if item else None,
            error=item.error if item else None,
        )


class DocumentSummaryResponse(CamelModel):
    id: str
    title: str
    created_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentSummaryResponse":
        return cls(id=document.id, title=document.title, created_at=document.created_at)


class DocumentResponse(CamelModel):
    id: str
    title: str
    full_text: str
    created_at: datetime
    updated_at: datetime
    attachments: list[AttachmentResponse]

    @classmethod
    def from_document(cls, document: Document, items: list[SignedUrlItem] | None = None) -> "DocumentResponse":
        by_attachment = {item.attachment_id: item for item in items or []}
        return cls(
            id=document.id,
            title=document.title,
            full_text=document.full_text,
            created_at=document.created_at,
            updated_at=document.updated_at,
            attachments=[AttachmentResponse.from_attachment(a, by_attachment.get(a.id)) for a in document.attachments],
        )


class SearchResultResponse(CamelModel):
    id: str
    title: str
    created_at: datetime
    score: float

    @classmethod
    def from_hit(cls, hit: SearchHit) -> "SearchResultResponse":
        return cls(id=hit.document_id, title=hit.title, created_at=hit.created_at, score=hit.score)


class HealthResponse(BaseModel):
    status: str
    clients: dict[str, bool]
