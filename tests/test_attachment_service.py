import asyncio
import logging

import pytest

from conftest import FakeExtractor
from server.core.AttachmentService import AttachmentService
from server.core.ExtractionService import ExtractionService
from shared.helper.HelperBlobKey import BlobKeyGenerator
from shared.logging.ReconciliationLog import ORPHAN_BLOB, ORPHAN_METADATA
from shared.models.document import UploadFile
from shared.models.errors import ForbiddenError, NotFoundError, UpstreamError, ValidationError
from shared.models.identity import Identity, Role


def pdf(name: str, text: str) -> UploadFile:
    return UploadFile(filename=name, mime_type="application/pdf", content=text.encode())


def png(name: str) -> UploadFile:
    return UploadFile(filename=name, mime_type="image/png", content=b"\x89PNG\r\n")


def reconciliation_records(caplog, event: str) -> list[logging.LogRecord]:
    return [r for r in caplog.records if getattr(r, "reconciliation_event", None) == event]


class TestAddAttachments:
    @pytest.mark.asyncio
    async def test_adds_batch_in_submission_order(self, attachment_service, meta_client, blob_client):
        document = await meta_client.do_create_document("Quarterly")

        added = await attachment_service.add_attachments(document.id, [pdf("a.pdf", "alpha"), png("b.png")], "alice")

        assert [a.attachment.title for a in added] == ["a.pdf", "b.png"]
        assert all(a.signed_url.signed_url for a in added)
        assert all(a.attachment.owner_user_id == "alice" for a in added)
        stored = await meta_client.do_fetch_document(document.id)
        assert [a.id for a in stored.attachments] == [a.attachment.id for a in added]
        assert stored.full_text == "alpha"
        assert sorted(blob_client.get_keys()) == sorted(a.attachment.blob_key for a in stored.attachments)

    @pytest.mark.asyncio
    async def test_same_filename_twice_gets_distinct_keys(self, attachment_service, meta_client):
        document = await meta_client.do_create_document("Dupes")
        added = await attachment_service.add_attachments(document.id, [pdf("scan.pdf", "x"), pdf("scan.pdf", "y")], "alice")
        keys = [a.attachment.blob_key for a in added]
        assert len(set(keys)) == 2
        assert all(key.startswith("documents/") and key.endswith("-scan.pdf") for key in keys)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "files",
        [
            [],
            [pdf(f"{i}.pdf", "x") for i in range(6)],
            [UploadFile(filename="empty.pdf", mime_type="application/pdf", content=b"")],
            [UploadFile(filename=" ", mime_type="application/pdf", content=b"x")],
            [UploadFile(filename="a.bin", mime_type="", content=b"x")],
        ],
    )
    async def test_invalid_batches_touch_nothing(self, attachment_service, meta_client, blob_client, files):
        document = await meta_client.do_create_document("Doc")
        with pytest.raises(ValidationError):
            await attachment_service.add_attachments(document.id, files, "alice")
        assert blob_client.get_keys() == []

    @pytest.mark.asyncio
    async def test_unknown_document(self, attachment_service, blob_client):
        with pytest.raises(NotFoundError):
            await attachment_service.add_attachments("missing", [pdf("a.pdf", "x")], "alice")
        assert blob_client.get_keys() == []

    @pytest.mark.asyncio
    async def test_failed_put_rolls_back_the_batch(self, attachment_service, meta_client, blob_client):
        document = await meta_client.do_create_document("Doc")
        blob_client.fail_put_marker = "bad"

        with pytest.raises(UpstreamError) as exc_info:
            await attachment_service.add_attachments(document.id, [pdf("good.pdf", "x"), pdf("bad.pdf", "y")], "alice")

        assert exc_info.value.document_id == document.id
        assert any(key.endswith("-bad.pdf") for key in exc_info.value.blob_keys)
        assert blob_client.get_keys() == []
        assert (await meta_client.do_fetch_document(document.id)).attachments == []

    @pytest.mark.asyncio
    async def test_failed_compensation_is_logged_as_orphan(self, attachment_service, meta_client, blob_client, caplog):
        document = await meta_client.do_create_document("Doc")
        blob_client.fail_put_marker = "bad"
        blob_client.fail_delete = True

        with pytest.raises(UpstreamError):
            await attachment_service.add_attachments(document.id, [pdf("good.pdf", "x"), pdf("bad.pdf", "y")], "alice")

        records = reconciliation_records(caplog, ORPHAN_BLOB)
        assert len(records) == 1
        assert any(key.endswith("-good.pdf") for key in records[0].blob_keys)
        assert (await meta_client.do_fetch_document(document.id)).attachments == []

    @pytest.mark.asyncio
    async def test_failed_append_logs_orphan_blobs(self, attachment_service, meta_client, blob_client, caplog):
        document = await meta_client.do_create_document("Doc")
        meta_client.fail_append = True

        with pytest.raises(UpstreamError) as exc_info:
            await attachment_service.add_attachments(document.id, [pdf("a.pdf", "x"), pdf("b.pdf", "y")], "alice")

        assert sorted(exc_info.value.blob_keys) == sorted(blob_client.get_keys())
        records = reconciliation_records(caplog, ORPHAN_BLOB)
        assert len(records) == 1
        assert records[0].document_id == document.id
        assert sorted(records[0].blob_keys) == sorted(blob_client.get_keys())

    @pytest.mark.asyncio
    async def test_unexpected_put_error_still_rolls_back(self, attachment_service, key_generator, meta_client, blob_client, monkeypatch):
        document = await meta_client.do_create_document("Doc")
        next_key = key_generator.next_key

        def broken_next_key(filename: str) -> str:
            if filename == "boom.pdf":
                raise RuntimeError("clock went backwards")
            return next_key(filename)

        monkeypatch.setattr(key_generator, "next_key", broken_next_key)

        with pytest.raises(RuntimeError, match="clock went backwards"):
            await attachment_service.add_attachments(document.id, [pdf("good.pdf", "x"), pdf("boom.pdf", "y")], "alice")

        assert blob_client.get_keys() == []
        assert (await meta_client.do_fetch_document(document.id)).attachments == []

    @pytest.mark.asyncio
    async def test_cancelled_upload_rolls_back_written_blobs(self, attachment_service, meta_client, blob_client):
        document = await meta_client.do_create_document("Doc")
        blob_client.hold_put_marker = "slow"

        task = asyncio.create_task(
            attachment_service.add_attachments(document.id, [pdf("fast.pdf", "x"), pdf("slow.pdf", "y")], "alice")
        )
        for _ in range(100):
            if blob_client.get_keys():
                break
            await asyncio.sleep(0.01)
        assert any(key.endswith("-fast.pdf") for key in blob_client.get_keys())

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert blob_client.get_keys() == []
        assert (await meta_client.do_fetch_document(document.id)).attachments == []

    @pytest.mark.asyncio
    async def test_key_conflict_generates_a_new_key(self, helper_config, meta_client, blob_client, extraction_service, access_url_service):
        service = AttachmentService(
            helper_config, blob_client, meta_client, extraction_service, access_url_service,
            key_generator=BlobKeyGenerator(clock=lambda: 1.0),
        )
        # written by another process with the same clock
        await blob_client.do_put("documents/1000-a.pdf", b"foreign", "application/pdf")
        document = await meta_client.do_create_document("Doc")

        added = await service.add_attachments(document.id, [pdf("a.pdf", "mine")], "alice")

        assert added[0].attachment.blob_key == "documents/1001-a.pdf"
        assert await blob_client.do_get("documents/1000-a.pdf") == b"foreign"

    @pytest.mark.asyncio
    async def test_extraction_failure_does_not_fail_the_upload(self, helper_config, meta_client, blob_client, access_url_service):
        extraction_service = ExtractionService(
            helper_config, blob_client, meta_client, [FakeExtractor(helper_config, failures=("broken.pdf",))]
        )
        service = AttachmentService(helper_config, blob_client, meta_client, extraction_service, access_url_service)
        document = await meta_client.do_create_document("Doc")

        added = await service.add_attachments(document.id, [pdf("broken.pdf", "x"), pdf("ok.pdf", "fine")], "alice")

        assert len(added) == 2
        assert (await meta_client.do_fetch_document(document.id)).full_text == "fine"

    @pytest.mark.asyncio
    async def test_concurrent_batches_lose_nothing(self, helper_config, meta_client, blob_client, access_url_service):
        extractor = FakeExtractor(helper_config, delays={"a1.pdf": 0.03, "b2.pdf": 0.01})
        extraction_service = ExtractionService(helper_config, blob_client, meta_client, [extractor])
        service = AttachmentService(helper_config, blob_client, meta_client, extraction_service, access_url_service)
        document = await meta_client.do_create_document("Doc")

        await asyncio.gather(
            service.add_attachments(document.id, [pdf("a1.pdf", "A1"), pdf("a2.pdf", "A2")], "alice"),
            service.add_attachments(document.id, [pdf("b1.pdf", "B1"), pdf("b2.pdf", "B2")], "bob"),
        )

        stored = await meta_client.do_fetch_document(document.id)
        assert len(stored.attachments) == 4
        assert len({a.blob_key for a in stored.attachments}) == 4
        # full text follows attachment order, whichever batch merged first
        expected = [a.title.removesuffix(".pdf").upper() for a in stored.attachments]
        assert stored.full_text.split("\n\n") == expected
        assert sorted(expected) == ["A1", "A2", "B1", "B2"]

    @pytest.mark.asyncio
    async def test_slow_first_batch_text_stays_ahead(self, helper_config, meta_client, blob_client, access_url_service):
        extractor = FakeExtractor(helper_config, delays={"a1.pdf": 0.05})
        extraction_service = ExtractionService(helper_config, blob_client, meta_client, [extractor])
        service = AttachmentService(helper_config, blob_client, meta_client, extraction_service, access_url_service)
        document = await meta_client.do_create_document("Doc")

        await asyncio.gather(
            service.add_attachments(document.id, [pdf("a1.pdf", "A1")], "alice"),
            service.add_attachments(document.id, [pdf("b1.pdf", "B1")], "bob"),
        )

        stored = await meta_client.do_fetch_document(document.id)
        order = [a.title.removesuffix(".pdf").upper() for a in stored.attachments]
        assert stored.full_text == "\n\n".join(order)


class TestRemoveAttachment:
    @pytest.fixture
    def alice(self) -> Identity:
        return Identity(user_id="alice")

    async def _document_with_attachment(self, attachment_service, meta_client, owner: str):
        document = await meta_client.do_create_document("Doc")
        added = await attachment_service.add_attachments(document.id, [pdf("a.pdf", "alpha"), png("b.png")], owner)
        return document, added[0].attachment

    @pytest.mark.asyncio
    async def test_owner_removes_attachment_and_blob(self, attachment_service, meta_client, blob_client, alice):
        document, attachment = await self._document_with_attachment(attachment_service, meta_client, "alice")

        await attachment_service.remove_attachment(document.id, attachment.id, alice)

        stored = await meta_client.do_fetch_document(document.id)
        assert [a.title for a in stored.attachments] == ["b.png"]
        assert not await blob_client.do_exists(attachment.blob_key)
        # extracted text is kept
        assert stored.full_text == "alpha"

    @pytest.mark.asyncio
    async def test_admin_removes_foreign_attachment(self, attachment_service, meta_client, blob_client):
        document, attachment = await self._document_with_attachment(attachment_service, meta_client, "alice")

        await attachment_service.remove_attachment(document.id, attachment.id, Identity(user_id="root", role=Role.ADMIN))

        assert (await meta_client.do_fetch_document(document.id)).get_attachment(attachment.id) is None

    @pytest.mark.asyncio
    async def test_other_user_is_forbidden(self, attachment_service, meta_client, blob_client):
        document, attachment = await self._document_with_attachment(attachment_service, meta_client, "alice")

        with pytest.raises(ForbiddenError):
            await attachment_service.remove_attachment(document.id, attachment.id, Identity(user_id="mallory"))

        assert (await meta_client.do_fetch_document(document.id)).get_attachment(attachment.id) is not None
        assert await blob_client.do_exists(attachment.blob_key)

    @pytest.mark.asyncio
    async def test_unknown_attachment(self, attachment_service, meta_client, alice):
        document = await meta_client.do_create_document("Doc")
        with pytest.raises(NotFoundError):
            await attachment_service.remove_attachment(document.id, "nope", alice)

    @pytest.mark.asyncio
    async def test_blob_delete_failure_leaves_metadata(self, attachment_service, meta_client, blob_client, alice):
        document, attachment = await self._document_with_attachment(attachment_service, meta_client, "alice")
        blob_client.fail_delete = True

        with pytest.raises(UpstreamError):
            await attachment_service.remove_attachment(document.id, attachment.id, alice)

        assert (await meta_client.do_fetch_document(document.id)).get_attachment(attachment.id) is not None

    @pytest.mark.asyncio
    async def test_metadata_failure_after_blob_delete_is_logged(self, attachment_service, meta_client, blob_client, alice, caplog):
        document, attachment = await self._document_with_attachment(attachment_service, meta_client, "alice")
        meta_client.fail_remove = True

        with pytest.raises(UpstreamError) as exc_info:
            await attachment_service.remove_attachment(document.id, attachment.id, alice)

        assert exc_info.value.blob_keys == [attachment.blob_key]
        records = reconciliation_records(caplog, ORPHAN_METADATA)
        assert len(records) == 1
        assert records[0].attachment_id == attachment.id
        assert not await blob_client.do_exists(attachment.blob_key)
