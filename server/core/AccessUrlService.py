"""Access URL issuer: turns blob keys into time-limited bearer URLs.

A signed URL lets anyone holding it fetch the blob until it expires, without
any further identity check at the blob store. URLs are therefore issued only
at the point of use, never cached, and never written to logs.
"""

import asyncio
from datetime import timedelta

from shared.clients.blob.BlobClientInterface import BlobClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import PDF_MIME_TYPE, Attachment, SignedUrlItem, utc_now
from shared.models.errors import ServiceError

PRESIGN_TTL_SECONDS = 3600  # fixed for every caller
PRESIGN_CONCURRENCY = 5     # max parallel presign calls per batch


class AccessUrlService:
    """Issues signed GET URLs for attachments."""

    def __init__(self, helper_config: HelperConfig, blob_client: BlobClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._blob_client = blob_client

    ##########################################
    ############### CORE #####################
    ##########################################

    async def issue(
        self,
        blob_key: str,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        """Presign one key for PRESIGN_TTL_SECONDS.

        Args:
            blob_key (str): The key to grant access to.
            content_type (str | None): Forced response Content-Type.
            content_disposition (str | None): Forced response Content-Disposition.

        Returns:
            str: The signed URL.

        Raises:
            UpstreamError: If the blob store cannot presign the key.
        """
        return await self._blob_client.do_presign(
            blob_key,
            ttl_seconds=PRESIGN_TTL_SECONDS,
            content_type=content_type,
            content_disposition=content_disposition,
        )

    async def issue_for_attachments(self, attachments: list[Attachment], inline_pdf: bool = False) -> list[SignedUrlItem]:
        """Presign every attachment with a bounded fan-out.

        A failure for one key yields an item with an error marker; the other
        items are still returned. The result keeps the order of the input.

        Args:
            attachments (list[Attachment]): Attachments to presign.
            inline_pdf (bool): Force inline display (Content-Type application/pdf,
                Content-Disposition inline) for PDF attachments.

        Returns:
            list[SignedUrlItem]: One item per attachment, in input order.
        """
        if not attachments:
            return []
        sem = asyncio.Semaphore(min(PRESIGN_CONCURRENCY, len(attachments)))
        items = await asyncio.gather(
            *[self._issue_item(attachment, inline_pdf, sem) for attachment in attachments]
        )
        failed = sum(1 for item in items if item.error)
        if failed:
            self.logging.warning("Presigned %d of %d attachment URL(s); %d failed.", len(items) - failed, len(items), failed)
        return list(items)

    async def _issue_item(self, attachment: Attachment, inline_pdf: bool, sem: asyncio.Semaphore) -> SignedUrlItem:
        content_type, content_disposition = None, None
        if inline_pdf and attachment.is_pdf:
            content_type, content_disposition = PDF_MIME_TYPE, "inline"

        async with sem:
            expires_at = utc_now() + timedelta(seconds=PRESIGN_TTL_SECONDS)
            try:
                url = await self.issue(attachment.blob_key, content_type, content_disposition)
            except ServiceError as exc:
                self.logging.error("Presign failed for attachment %s (key '%s'): %s", attachment.id, attachment.blob_key, exc.message)
                return SignedUrlItem(
                    attachment_id=attachment.id,
                    title=attachment.title,
                    blob_key=attachment.blob_key,
                    error=exc.message,
                )
        return SignedUrlItem(
            attachment_id=attachment.id,
            title=attachment.title,
            blob_key=attachment.blob_key,
            signed_url=url,
            expires_at=expires_at,
        )
