from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class BlobClientInterface(ClientInterface):
    """Object storage addressed by opaque keys.

    The public do_* methods wrap every engine call in the client deadline and
    translate backend failures into the service error taxonomy. Engines only
    implement the underscored primitives and raise BlobNotFoundError /
    BlobKeyConflictError where the backend tells them so.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "blob"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_put(self, blob_key: str, data: bytes, content_type: str) -> None:
        """Store bytes under a new key. Never overwrites an existing object.

        Args:
            blob_key (str): The key to write.
            data (bytes): The payload.
            content_type (str): MIME type stored with the object.

        Raises:
            BlobKeyConflictError: If an object already exists under the key.
            UpstreamError: On timeout or backend failure.
        """
        await self._with_deadline(self._put(blob_key, data, content_type), "put", blob_keys=[blob_key])
        self.logging.debug("Stored blob '%s' (%d bytes) in %s", blob_key, len(data), self.get_engine_name())

    async def do_get(self, blob_key: str) -> bytes:
        """Read an object back.

        Raises:
            BlobNotFoundError: If no object exists under the key.
            UpstreamError: On timeout or backend failure.
        """
        return await self._with_deadline(self._get(blob_key), "get", blob_keys=[blob_key])

    async def do_delete(self, blob_key: str) -> None:
        """Delete an object. Deleting a missing key is not an error.

        Raises:
            UpstreamError: On timeout or backend failure.
        """
        await self._with_deadline(self._delete(blob_key), "delete", blob_keys=[blob_key])
        self.logging.debug("Deleted blob '%s' from %s", blob_key, self.get_engine_name())

    async def do_exists(self, blob_key: str) -> bool:
        return await self._with_deadline(self._exists(blob_key), "exists", blob_keys=[blob_key])

    async def do_presign(
        self,
        blob_key: str,
        ttl_seconds: int,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        """Create a time-limited GET URL for a key.

        The URL is a bearer capability and must never be logged.

        Args:
            blob_key (str): The key to grant access to.
            ttl_seconds (int): Validity window in seconds.
            content_type (str | None): Forced response Content-Type.
            content_disposition (str | None): Forced response Content-Disposition.

        Raises:
            UpstreamError: On timeout or backend failure.
        """
        return await self._with_deadline(
            self._presign(blob_key, ttl_seconds, content_type, content_disposition), "presign", blob_keys=[blob_key]
        )

    ##########################################
    ############ ENGINE PRIMITIVES ###########
    ##########################################

    @abstractmethod
    async def _put(self, blob_key: str, data: bytes, content_type: str) -> None:
        pass

    @abstractmethod
    async def _get(self, blob_key: str) -> bytes:
        pass

    @abstractmethod
    async def _delete(self, blob_key: str) -> None:
        pass

    @abstractmethod
    async def _exists(self, blob_key: str) -> bool:
        pass

    @abstractmethod
    async def _presign(
        self,
        blob_key: str,
        ttl_seconds: int,
        content_type: str | None,
        content_disposition: str | None,
    ) -> str:
        pass
