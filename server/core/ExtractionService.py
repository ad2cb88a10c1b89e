"""Text extraction pipeline.

For every newly added attachment with an extractable MIME type the blob is
read back from the store, its text extracted, and the texts of the whole
batch are merged into the document's full_text with a single metadata
update. Extraction failures are per file and never fail the upload.
"""

import asyncio
from dataclasses import dataclass
from typing import Literal

from shared.clients.blob.BlobClientInterface import BlobClientInterface
from shared.clients.extract.ExtractClientInterface import ExtractClientInterface
from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.logging.ReconciliationLog import ReconciliationLog
from shared.models.document import Attachment, Document, TextSegment
from shared.models.errors import ServiceError

TEXT_SEPARATOR = "\n\n"
EXTRACT_CONCURRENCY = 5  # never more than one batch
MERGE_ATTEMPTS = 5       # compare-and-set retries on concurrent document updates


@dataclass
class ExtractionOutcome:
    attachment_id: str
    status: Literal["extracted", "empty", "skipped", "failed"]
    text: str = ""
    error: str | None = None


def merge_text_segments(document: Document, segments: list[TextSegment]) -> list[TextSegment]:
    """Place new per-attachment texts among the document's segments in attachment order.

    A new segment goes right after the last segment of an earlier attachment,
    so a batch whose merge commits late still lands before the texts of later
    batches. A full_text written without segments stays one leading block.
    Segments of attachments that were removed keep their place and are not
    used as anchors.
    """
    positions = {attachment.id: index for index, attachment in enumerate(document.attachments)}
    positions[""] = -1
    merged = list(document.text_segments)
    if not merged and document.full_text:
        merged = [TextSegment(attachment_id="", text=document.full_text)]
    present = {segment.attachment_id for segment in merged}

    for segment in segments:
        if not segment.text or segment.attachment_id in present:
            continue
        present.add(segment.attachment_id)
        rank = positions.get(segment.attachment_id)
        if rank is None:
            merged.append(segment)
            continue
        at = 0
        for index, existing in enumerate(merged):
            existing_rank = positions.get(existing.attachment_id)
            if existing_rank is not None and existing_rank < rank:
                at = index + 1
        merged.insert(at, segment)
    return merged


def join_segments(segments: list[TextSegment]) -> str:
    return TEXT_SEPARATOR.join(segment.text for segment in segments)


class ExtractionService:
    """Runs extraction for one batch of attachments and merges the result."""

    def __init__(
        self,
        helper_config: HelperConfig,
        blob_client: BlobClientInterface,
        meta_client: MetaClientInterface,
        extract_clients: list[ExtractClientInterface],
        reconciliation: ReconciliationLog | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._blob_client = blob_client
        self._meta_client = meta_client
        self._extract_clients = extract_clients
        self._reconciliation = reconciliation or ReconciliationLog()

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_extractor(self, mime_type: str) -> ExtractClientInterface | None:
        """Return the first configured engine that supports the MIME type, if any."""
        for client in self._extract_clients:
            if client.supports(mime_type):
                return client
        return None

    ##########################################
    ############### CORE #####################
    ##########################################

    async def run(self, document_id: str, attachments: list[Attachment]) -> list[ExtractionOutcome]:
        """Extract every attachment of a batch and merge the texts into full_text.

        All parallel results are collected before anything is written, and the
        merge follows the order of `attachments` (insertion order), never the
        order in which extractions finished.

        Args:
            document_id (str): The document the batch was appended to.
            attachments (list[Attachment]): The batch, in insertion order.

        Returns:
            list[ExtractionOutcome]: One outcome per attachment, in input order.
        """
        if not attachments:
            return []

        sem = asyncio.Semaphore(min(EXTRACT_CONCURRENCY, len(attachments)))
        results = await asyncio.gather(
            *[self._extract_attachment(document_id, attachment, sem) for attachment in attachments],
            return_exceptions=True,
        )

        outcomes: list[ExtractionOutcome] = []
        for attachment, result in zip(attachments, results):
            if isinstance(result, BaseException):
                self.logging.error("Extraction task for attachment %s crashed: %s", attachment.id, result)
                outcomes.append(ExtractionOutcome(attachment.id, "failed", error=str(result)))
            else:
                outcomes.append(result)

        segments = [
            TextSegment(attachment_id=outcome.attachment_id, text=outcome.text)
            for outcome in outcomes
            if outcome.status == "extracted"
        ]
        self.logging.info(
            "Extraction for document %s: %d extracted, %d skipped, %d failed.",
            document_id,
            len(segments),
            sum(1 for o in outcomes if o.status in ("skipped", "empty")),
            sum(1 for o in outcomes if o.status == "failed"),
        )
        if segments:
            await self._merge(document_id, segments)
        return outcomes

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _extract_attachment(self, document_id: str, attachment: Attachment, sem: asyncio.Semaphore) -> ExtractionOutcome:
        extractor = self.get_extractor(attachment.mime_type)
        if extractor is None:
            self.logging.debug("Skipping extraction for attachment %s: '%s' is not extractable.", attachment.id, attachment.mime_type)
            return ExtractionOutcome(attachment.id, "skipped")

        async with sem:
            try:
                # the upload stream is gone by now, so read the stored blob back
                data = await self._blob_client.do_get(attachment.blob_key)
                text = await extractor.do_extract(data, attachment.title, attachment.mime_type)
            except ServiceError as exc:
                self.logging.warning(
                    "Extraction failed for attachment %s ('%s') of document %s: %s",
                    attachment.id, attachment.title, document_id, exc.message,
                )
                return ExtractionOutcome(attachment.id, "failed", error=exc.message)

        if not text:
            return ExtractionOutcome(attachment.id, "empty")
        return ExtractionOutcome(attachment.id, "extracted", text=text)

    async def _merge(self, document_id: str, segments: list[TextSegment]) -> None:
        """Write the batch texts and the rebuilt full_text with an optimistic compare-and-set.

        A merge that cannot be written is logged on the reconciliation channel;
        the attachments themselves are already stored, so the upload succeeds.
        """
        attachment_ids = [segment.attachment_id for segment in segments]
        try:
            for attempt in range(1, MERGE_ATTEMPTS + 1):
                document = await self._meta_client.do_fetch_document(document_id)
                merged = merge_text_segments(document, segments)
                if await self._meta_client.do_compare_and_set_full_text(
                    document_id, join_segments(merged), document.revision, merged
                ):
                    self.logging.debug("Merged %d text(s) into document %s (attempt %d).", len(segments), document_id, attempt)
                    return
                self.logging.debug("Document %s changed during merge, retrying (attempt %d).", document_id, attempt)
            reason = f"revision conflict after {MERGE_ATTEMPTS} attempts"
        except ServiceError as exc:
            reason = exc.message

        self.logging.error("Could not merge extracted text into document %s: %s", document_id, reason)
        self._reconciliation.stale_full_text(document_id, attachment_ids, reason)
