"""Side channel for blob/metadata inconsistencies.

The attachment saga has no cross-store transaction. Whenever a step leaves
one side of the blob/metadata pair without its counterpart, the event is
written here (logger "reconciliation", file logs/reconciliation.log) so a
sweep can repair it later. Signed URLs never appear in these records.
"""

import logging

from shared.logging.logging_setup import RECONCILIATION_LOGGER_NAME

ORPHAN_BLOB = "orphan_blob"
ORPHAN_METADATA = "orphan_metadata"
STALE_FULL_TEXT = "stale_full_text"


class ReconciliationLog:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(RECONCILIATION_LOGGER_NAME)

    def _emit(self, event: str, message: str, *args, **fields) -> None:
        self._logger.error(message, *args, extra={"reconciliation_event": event, **fields})

    def orphan_blobs(self, document_id: str, blob_keys: list[str], reason: str) -> None:
        """Blobs exist in the store but no attachment references them."""
        if not blob_keys:
            return
        self._emit(
            ORPHAN_BLOB,
            "orphan_blob document_id=%s blob_keys=%s reason=%s",
            document_id, ",".join(blob_keys), reason,
            document_id=document_id, blob_keys=list(blob_keys),
        )

    def orphan_metadata(self, document_id: str, attachment_id: str, blob_key: str, reason: str) -> None:
        """An attachment entry remains while its blob is already gone."""
        self._emit(
            ORPHAN_METADATA,
            "orphan_metadata document_id=%s attachment_id=%s blob_key=%s reason=%s",
            document_id, attachment_id, blob_key, reason,
            document_id=document_id, attachment_id=attachment_id, blob_keys=[blob_key],
        )

    def stale_full_text(self, document_id: str, attachment_ids: list[str], reason: str) -> None:
        """Extracted text of stored attachments could not be merged into full_text."""
        self._emit(
            STALE_FULL_TEXT,
            "stale_full_text document_id=%s attachment_ids=%s reason=%s",
            document_id, ",".join(attachment_ids), reason,
            document_id=document_id, attachment_ids=list(attachment_ids),
        )
