"""Blob key generation for attachments."""

import os
import re
import threading
import time
from typing import Callable

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
MAX_NAME_LENGTH = 200


def sanitize_filename(filename: str) -> str:
    """Reduce an uploaded filename to a safe key segment.

    Path components are dropped, unsafe characters become "_", and leading dots
    are removed so the segment can never climb out of the key prefix.

    Args:
        filename (str): The original filename as sent by the client.

    Returns:
        str: A non-empty, key-safe name (e.g. "Q1_report.pdf").
    """
    name = os.path.basename((filename or "").replace("\\", "/"))
    name = _UNSAFE_CHARS.sub("_", name).lstrip(".")
    name = name[-MAX_NAME_LENGTH:]
    return name or "file"


class BlobKeyGenerator:
    """Generates keys of the form "<prefix>/<ms-timestamp>-<sanitized name>".

    Timestamps are strictly increasing within one generator, so two files with
    the same name in one batch (or in concurrent requests served by the same
    process) never share a key. Collisions across processes are caught by the
    blob store's conditional put and resolved by asking for a new key.
    """

    def __init__(self, prefix: str = "documents", clock: Callable[[], float] = time.time) -> None:
        self._prefix = prefix.strip("/")
        self._clock = clock
        self._last_timestamp = 0
        self._lock = threading.Lock()

    def _next_timestamp(self) -> int:
        with self._lock:
            timestamp = max(int(self._clock() * 1000), self._last_timestamp + 1)
            self._last_timestamp = timestamp
            return timestamp

    def next_key(self, filename: str) -> str:
        return f"{self._prefix}/{self._next_timestamp()}-{sanitize_filename(filename)}"
