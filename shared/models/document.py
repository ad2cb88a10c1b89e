"""Pydantic models for document data.

Hierarchy:
  Attachment      : metadata record pointing at exactly one blob.
  Document        : title, ordered attachments and the searchable full text.
  UploadFile      : one file of an AddAttachments batch, before it is stored.
  SignedUrlItem   : result of presigning one attachment (URL or error marker).
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

PDF_MIME_TYPE = "application/pdf"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Attachment(BaseModel):
    """A stored file attached to a document.

    The blob_key is unique across the whole system: no two attachments, on any
    document, ever reference the same key.
    """

    id: str
    owner_user_id: str
    blob_key: str
    title: str
    mime_type: str = "application/octet-stream"
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_pdf(self) -> bool:
        return self.mime_type.split(";")[0].strip().lower() == PDF_MIME_TYPE


class TextSegment(BaseModel):
    """Extracted text of one attachment, as it sits inside full_text."""

    attachment_id: str
    text: str


class Document(BaseModel):
    """A document as persisted in the metadata store.

    attachments keeps insertion order. full_text is only mutated by the text
    extraction pipeline and is the join of text_segments, which follow the
    order of attachments. revision is bumped by every metadata mutation and
    is used for optimistic compare-and-set of full_text.
    """

    id: str
    title: str
    attachments: list[Attachment] = []
    full_text: str = ""
    text_segments: list[TextSegment] = []
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    revision: int = 0

    def get_attachment(self, attachment_id: str) -> Attachment | None:
        for attachment in self.attachments:
            if attachment.id == attachment_id:
                return attachment
        return None


class UploadFile(BaseModel):
    """One incoming file of an AddAttachments batch."""

    filename: str
    mime_type: str
    content: bytes


class SignedUrlItem(BaseModel):
    """Presign result for one attachment.

    Exactly one of signed_url and error is set. A failed presign never hides
    the successfully presigned siblings of a batch.
    """

    attachment_id: str
    title: str
    blob_key: str
    signed_url: str | None = None
    error: str | None = None
    expires_at: datetime | None = None


class AddedAttachment(BaseModel):
    """An attachment appended by AddAttachments together with its signed URL."""

    attachment: Attachment
    signed_url: SignedUrlItem
