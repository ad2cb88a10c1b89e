import hashlib
import hmac
import time
from dataclasses import dataclass, field
from urllib.parse import parse_qs, quote, unquote, urlencode, urlparse

from shared.clients.blob.BlobClientInterface import BlobClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import BlobKeyConflictError, BlobNotFoundError


@dataclass
class _StoredBlob:
    data: bytes
    content_type: str
    created_at: float = field(default_factory=time.time)


class BlobClientMemory(BlobClientInterface):
    """In-process blob store for local development and tests.

    Signed URLs are HMAC-signed with BLOB_MEMORY_SIGNING_KEY and can be checked
    with verify_presigned_url().
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="memory://blobs", val_type="string")
        self._signing_key = self.get_config_val("SIGNING_KEY", default="local-development-key", val_type="string")
        self._blobs: dict[str, _StoredBlob] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Memory"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="memory://blobs"),
            EnvConfig(env_key="SIGNING_KEY", val_type="string", default="local-development-key"),
        ]

    def get_keys(self) -> list[str]:
        """Returns all stored keys, oldest first."""
        return [key for key, _ in sorted(self._blobs.items(), key=lambda item: item[1].created_at)]

    ##########################################
    ############### SIGNING ##################
    ##########################################

    def _sign(self, blob_key: str, query: dict[str, str]) -> str:
        canonical = blob_key + "?" + urlencode(sorted(query.items()))
        return hmac.new(self._signing_key.encode(), canonical.encode(), hashlib.sha256).hexdigest()

    def verify_presigned_url(self, url: str, now: float | None = None) -> bool:
        """Check signature and expiry of a URL produced by this client.

        Args:
            url (str): The signed URL.
            now (float | None): Unix time to check against; defaults to the current time.

        Returns:
            bool: True if the signature matches and the URL has not expired.
        """
        parsed = urlparse(url)
        blob_key = unquote(parsed.path.lstrip("/"))
        query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        signature = query.pop("signature", "")
        if not hmac.compare_digest(signature, self._sign(blob_key, query)):
            return False
        now = time.time() if now is None else now
        return int(query.get("expires", "0")) > now

    async def do_healthcheck(self) -> bool:
        return True

    ##########################################
    ############ ENGINE PRIMITIVES ###########
    ##########################################

    async def _put(self, blob_key: str, data: bytes, content_type: str) -> None:
        if blob_key in self._blobs:
            raise BlobKeyConflictError(blob_key)
        self._blobs[blob_key] = _StoredBlob(data=bytes(data), content_type=content_type)

    async def _get(self, blob_key: str) -> bytes:
        blob = self._blobs.get(blob_key)
        if blob is None:
            raise BlobNotFoundError(blob_key)
        return blob.data

    async def _delete(self, blob_key: str) -> None:
        self._blobs.pop(blob_key, None)

    async def _exists(self, blob_key: str) -> bool:
        return blob_key in self._blobs

    async def _presign(
        self,
        blob_key: str,
        ttl_seconds: int,
        content_type: str | None,
        content_disposition: str | None,
    ) -> str:
        query = {"expires": str(int(time.time()) + ttl_seconds)}
        if content_type:
            query["response-content-type"] = content_type
        if content_disposition:
            query["response-content-disposition"] = content_disposition
        query["signature"] = self._sign(blob_key, query)
        return f"{self._base_url.rstrip('/')}/{quote(blob_key)}?{urlencode(query)}"
