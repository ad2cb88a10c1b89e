"""Attachment lifecycle: adding a batch of files to a document and removing one.

There is no transaction spanning the blob store and the metadata store, so
both operations are sagas. Every step that would leave a blob without its
metadata entry (or the other way round) is either compensated or written to
the reconciliation log.
"""

import asyncio
import uuid

from server.core.AccessPolicy import can_remove_attachment
from server.core.AccessUrlService import AccessUrlService
from server.core.ExtractionService import ExtractionService
from shared.clients.blob.BlobClientInterface import BlobClientInterface
from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.helper.HelperBlobKey import BlobKeyGenerator
from shared.helper.HelperConfig import HelperConfig
from shared.logging.ReconciliationLog import ReconciliationLog
from shared.models.document import AddedAttachment, Attachment, UploadFile, utc_now
from shared.models.errors import (
    BlobKeyConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    UpstreamError,
    ValidationError,
)
from shared.models.identity import Identity

MAX_FILES_PER_BATCH = 5
KEY_CONFLICT_ATTEMPTS = 3


class _PutFailed(Exception):
    """Internal marker: a put failed, with the key of its last attempt."""

    def __init__(self, error: ServiceError, blob_key: str) -> None:
        super().__init__(error.message)
        self.error = error
        self.blob_key = blob_key


class AttachmentService:
    def __init__(
        self,
        helper_config: HelperConfig,
        blob_client: BlobClientInterface,
        meta_client: MetaClientInterface,
        extraction_service: ExtractionService,
        access_url_service: AccessUrlService,
        key_generator: BlobKeyGenerator | None = None,
        reconciliation: ReconciliationLog | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._blob_client = blob_client
        self._meta_client = meta_client
        self._extraction_service = extraction_service
        self._access_url_service = access_url_service
        self._key_generator = key_generator or BlobKeyGenerator()
        self._reconciliation = reconciliation or ReconciliationLog()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def _validate_files(self, files: list[UploadFile]) -> None:
        if not files:
            raise ValidationError("At least one file is required")
        if len(files) > MAX_FILES_PER_BATCH:
            raise ValidationError(
                f"At most {MAX_FILES_PER_BATCH} files per request",
                details={"max_files": MAX_FILES_PER_BATCH, "received": len(files)},
            )
        for index, file in enumerate(files):
            if not file.filename or not file.filename.strip():
                raise ValidationError("File is missing a filename", details={"index": index})
            if not file.mime_type or not file.mime_type.strip():
                raise ValidationError(f"File '{file.filename}' is missing a MIME type", details={"index": index})
            if not file.content:
                raise ValidationError(f"File '{file.filename}' is empty", details={"index": index})

    ##########################################
    ############### CORE #####################
    ##########################################

    async def add_attachments(self, document_id: str, files: list[UploadFile], uploader_id: str) -> list[AddedAttachment]:
        """Store a batch of files and attach them to a document.

        Either every file of the batch ends up attached, or none does: a failed
        put rolls back the blobs already written before any metadata changes.

        Args:
            document_id (str): The target document.
            files (list[UploadFile]): 1..MAX_FILES_PER_BATCH files, in submission order.
            uploader_id (str): Becomes the owner of every new attachment.

        Returns:
            list[AddedAttachment]: The new attachments with a signed URL each, in submission order.

        Raises:
            ValidationError: Bad batch (checked before any store access).
            NotFoundError: The document does not exist.
            UpstreamError: A blob or metadata write failed.
        """
        self._validate_files(files)
        await self._meta_client.do_fetch_document(document_id)

        blob_keys = await self._put_all(document_id, files)

        now = utc_now()
        attachments = [
            Attachment(
                id=uuid.uuid4().hex,
                owner_user_id=uploader_id,
                blob_key=blob_key,
                title=file.filename,
                mime_type=file.mime_type,
                created_at=now,
            )
            for file, blob_key in zip(files, blob_keys)
        ]

        try:
            await self._meta_client.do_append_attachments(document_id, attachments)
        except NotFoundError:
            # document deleted between resolve and append, nothing references the blobs
            self.logging.warning("Document %s vanished before attachments were appended, rolling back blobs.", document_id)
            await self._compensate(document_id, blob_keys, "document removed before append")
            raise
        except ServiceError as exc:
            self._reconciliation.orphan_blobs(document_id, blob_keys, f"metadata append failed: {exc.message}")
            raise UpstreamError(
                "Attachments were stored but could not be recorded on the document",
                document_id=document_id,
                blob_keys=blob_keys,
            ) from exc

        self.logging.info("Attached %d file(s) to document %s.", len(attachments), document_id)

        await self._extraction_service.run(document_id, attachments)

        signed = await self._access_url_service.issue_for_attachments(attachments)
        return [AddedAttachment(attachment=att, signed_url=item) for att, item in zip(attachments, signed)]

    async def remove_attachment(self, document_id: str, attachment_id: str, identity: Identity) -> None:
        """Remove one attachment and its blob.

        The blob goes first; the metadata entry is removed only once the blob
        delete succeeded. The document's full_text is left untouched.

        Raises:
            NotFoundError: The document or attachment does not exist.
            ForbiddenError: The caller is neither admin nor the attachment owner.
            UpstreamError: The blob delete or the metadata update failed.
        """
        document = await self._meta_client.do_fetch_document(document_id)
        attachment = document.get_attachment(attachment_id)
        if attachment is None:
            raise NotFoundError("Attachment not found", resource_type="attachment", resource_id=attachment_id)

        if not can_remove_attachment(identity, attachment):
            self.logging.warning(
                "User %s (%s) may not remove attachment %s of document %s.",
                identity.user_id, identity.role.value, attachment_id, document_id,
            )
            raise ForbiddenError("Not allowed to remove this attachment", details={"attachment_id": attachment_id})

        await self._blob_client.do_delete(attachment.blob_key)

        try:
            await self._meta_client.do_remove_attachment(document_id, attachment_id)
        except ServiceError as exc:
            self._reconciliation.orphan_metadata(document_id, attachment_id, attachment.blob_key, exc.message)
            raise UpstreamError(
                "Blob was deleted but the attachment entry could not be removed",
                document_id=document_id,
                blob_keys=[attachment.blob_key],
            ) from exc

        self.logging.info("Removed attachment %s from document %s.", attachment_id, document_id)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _put_all(self, document_id: str, files: list[UploadFile]) -> list[str]:
        """Put every file of the batch, returning the keys in submission order.

        On any failure, and on cancellation, every key that was or may have been
        written is deleted before the error propagates. A put failure surfaces
        as an UpstreamError naming the affected keys; anything else is re-raised
        as is.
        """
        sem = asyncio.Semaphore(len(files))
        # keys of finished and in-flight puts, conflicting keys excluded
        touched: list[str] = []
        try:
            results = await asyncio.gather(*[self._put_one(file, sem, touched) for file in files], return_exceptions=True)
        except asyncio.CancelledError:
            self.logging.warning("Upload to document %s was cancelled, rolling back %d blob(s).", document_id, len(touched))
            await asyncio.shield(self._compensate(document_id, list(touched), "cancelled upload"))
            raise

        failures = [result for result in results if isinstance(result, BaseException)]
        if not failures:
            return list(results)

        self.logging.error(
            "%d of %d blob put(s) failed for document %s: %s",
            len(failures), len(files), document_id,
            "; ".join(f.error.message if isinstance(f, _PutFailed) else repr(f) for f in failures),
        )
        # a timed out put may still land, so its key is rolled back as well
        await self._compensate(document_id, list(touched), "batch put failed")

        for failure in failures:
            if not isinstance(failure, _PutFailed):
                raise failure
        raise UpstreamError(
            "Storing the attachments failed",
            document_id=document_id,
            blob_keys=touched + [f.blob_key for f in failures if f.blob_key not in touched],
        )

    async def _put_one(self, file: UploadFile, sem: asyncio.Semaphore, touched: list[str]) -> str:
        async with sem:
            for attempt in range(1, KEY_CONFLICT_ATTEMPTS + 1):
                blob_key = self._key_generator.next_key(file.filename)
                touched.append(blob_key)
                try:
                    await self._blob_client.do_put(blob_key, file.content, file.mime_type)
                    return blob_key
                except BlobKeyConflictError as exc:
                    # the object under this key belongs to someone else
                    touched.remove(blob_key)
                    self.logging.warning("Blob key '%s' already taken (attempt %d), generating a new one.", blob_key, attempt)
                    if attempt == KEY_CONFLICT_ATTEMPTS:
                        raise _PutFailed(exc, blob_key) from exc
                except ServiceError as exc:
                    raise _PutFailed(exc, blob_key) from exc
        raise AssertionError("unreachable")

    async def _compensate(self, document_id: str, blob_keys: list[str], reason: str) -> None:
        """Best-effort delete of blobs that no attachment references. Leftovers are logged as orphans."""
        if not blob_keys:
            return
        results = await asyncio.gather(*[self._blob_client.do_delete(key) for key in blob_keys], return_exceptions=True)
        leftovers = [key for key, result in zip(blob_keys, results) if isinstance(result, BaseException)]
        if leftovers:
            self._reconciliation.orphan_blobs(document_id, leftovers, f"compensation after {reason} failed")
        self.logging.info(
            "Rolled back %d of %d blob(s) for document %s.", len(blob_keys) - len(leftovers), len(blob_keys), document_id
        )
