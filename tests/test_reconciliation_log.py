import json
import logging

from shared.logging.ReconciliationLog import ORPHAN_BLOB, ORPHAN_METADATA, ReconciliationLog
from shared.logging.logging_setup import CustomFormatter, ReconciliationFormatter


class ListHandler(logging.Handler):
    def __init__(self, formatter: logging.Formatter):
        super().__init__()
        self.setFormatter(formatter)
        self.lines: list[str] = []

    def emit(self, record):
        self.lines.append(self.format(record))


def _logger(name: str, handler: logging.Handler) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.handlers = [handler]
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    return logger


def test_orphan_blobs_are_written_as_json_lines():
    handler = ListHandler(ReconciliationFormatter("UTC"))
    log = ReconciliationLog(_logger("tests.reconciliation.json", handler))

    log.orphan_blobs("doc-1", ["documents/1-a.pdf", "documents/2-b.png"], "metadata append failed")

    entry = json.loads(handler.lines[0])
    assert entry["event"] == ORPHAN_BLOB
    assert entry["document_id"] == "doc-1"
    assert entry["blob_keys"] == ["documents/1-a.pdf", "documents/2-b.png"]
    assert "metadata append failed" in entry["message"]


def test_orphan_metadata_names_the_attachment():
    handler = ListHandler(ReconciliationFormatter("UTC"))
    log = ReconciliationLog(_logger("tests.reconciliation.meta", handler))

    log.orphan_metadata("doc-1", "att-1", "documents/1-a.pdf", "timeout")

    entry = json.loads(handler.lines[0])
    assert entry["event"] == ORPHAN_METADATA
    assert entry["attachment_id"] == "att-1"
    assert entry["blob_keys"] == ["documents/1-a.pdf"]


def test_nothing_is_logged_without_orphans():
    handler = ListHandler(ReconciliationFormatter("UTC"))
    log = ReconciliationLog(_logger("tests.reconciliation.empty", handler))
    log.orphan_blobs("doc-1", [], "nothing left")
    assert handler.lines == []


def test_level_prefix_is_not_applied_twice():
    first = ListHandler(CustomFormatter("UTC", "%(message)s"))
    second = ListHandler(CustomFormatter("UTC", "%(message)s"))
    logger = _logger("tests.reconciliation.prefix", first)
    logger.addHandler(second)

    logger.error("disk %s", "full")

    assert first.lines == second.lines == ["⛔ disk full"]
