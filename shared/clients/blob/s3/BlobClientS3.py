from contextlib import AsyncExitStack
from typing import Any

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shared.clients.blob.BlobClientInterface import BlobClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import BlobKeyConflictError, BlobNotFoundError

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_CONFLICT_CODES = {"PreconditionFailed", "412", "ConditionalRequestConflict"}


class BlobClientS3(BlobClientInterface):
    """S3 (or S3-compatible, e.g. MinIO) blob store backed by one shared aioboto3 client."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._bucket = self.get_config_val("BUCKET", default=None, val_type="string")
        self._region = self.get_config_val("REGION", default="us-east-1", val_type="string")
        self._access_key_id = self.get_config_val("ACCESS_KEY_ID", default="", val_type="string")
        self._secret_access_key = self.get_config_val("SECRET_ACCESS_KEY", default="", val_type="string")
        self._endpoint_url = self.get_config_val("ENDPOINT_URL", default="", val_type="string")
        self._conditional_writes = self.get_config_val("CONDITIONAL_WRITES", default=True, val_type="bool")

        self._session = aioboto3.Session()
        self._exit_stack: AsyncExitStack | None = None
        self._s3: Any = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "S3"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BUCKET", val_type="string", default=None),
            EnvConfig(env_key="REGION", val_type="string", default="us-east-1"),
            EnvConfig(env_key="ACCESS_KEY_ID", val_type="string", default=""),
            EnvConfig(env_key="SECRET_ACCESS_KEY", val_type="string", default=""),
            EnvConfig(env_key="ENDPOINT_URL", val_type="string", default=""),
            EnvConfig(env_key="CONDITIONAL_WRITES", val_type="bool", default=True),
        ]

    def _get_client_kwargs(self) -> dict:
        kwargs: dict = {
            "region_name": self._region,
            "config": Config(
                connect_timeout=self.timeout,
                read_timeout=self.timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        }
        # empty credentials fall back to the default AWS credential chain
        if self._access_key_id and self._secret_access_key:
            kwargs["aws_access_key_id"] = self._access_key_id
            kwargs["aws_secret_access_key"] = self._secret_access_key
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url
        return kwargs

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        self._exit_stack = AsyncExitStack()
        self._s3 = await self._exit_stack.enter_async_context(
            self._session.client("s3", **self._get_client_kwargs())
        )
        self.logging.info("S3 blob client ready for bucket '%s' (%s).", self._bucket, self._region)

    async def close(self) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None
            self._s3 = None

    def _require_client(self) -> Any:
        if self._s3 is None:
            raise Exception("S3 client not initialised. Call boot() before making requests.")
        return self._s3

    @staticmethod
    def _error_code(exc: ClientError) -> str:
        return str(exc.response.get("Error", {}).get("Code", ""))

    async def do_healthcheck(self) -> bool:
        try:
            await self._require_client().head_bucket(Bucket=self._bucket)
        except (ClientError, BotoCoreError) as exc:
            self.logging.warning("S3 healthcheck for bucket '%s' failed: %s", self._bucket, exc)
            return False
        return True

    ##########################################
    ############ ENGINE PRIMITIVES ###########
    ##########################################

    async def _put(self, blob_key: str, data: bytes, content_type: str) -> None:
        params: dict = {
            "Bucket": self._bucket,
            "Key": blob_key,
            "Body": data,
            "ContentType": content_type,
        }
        if self._conditional_writes:
            params["IfNoneMatch"] = "*"
        try:
            await self._require_client().put_object(**params)
        except ClientError as exc:
            if self._error_code(exc) in _CONFLICT_CODES:
                raise BlobKeyConflictError(blob_key) from exc
            raise

    async def _get(self, blob_key: str) -> bytes:
        try:
            response = await self._require_client().get_object(Bucket=self._bucket, Key=blob_key)
        except ClientError as exc:
            if self._error_code(exc) in _NOT_FOUND_CODES:
                raise BlobNotFoundError(blob_key) from exc
            raise
        async with response["Body"] as stream:
            return await stream.read()

    async def _delete(self, blob_key: str) -> None:
        await self._require_client().delete_object(Bucket=self._bucket, Key=blob_key)

    async def _exists(self, blob_key: str) -> bool:
        try:
            await self._require_client().head_object(Bucket=self._bucket, Key=blob_key)
        except ClientError as exc:
            if self._error_code(exc) in _NOT_FOUND_CODES:
                return False
            raise
        return True

    async def _presign(
        self,
        blob_key: str,
        ttl_seconds: int,
        content_type: str | None,
        content_disposition: str | None,
    ) -> str:
        params: dict = {"Bucket": self._bucket, "Key": blob_key}
        if content_type:
            params["ResponseContentType"] = content_type
        if content_disposition:
            params["ResponseContentDisposition"] = content_disposition
        return await self._require_client().generate_presigned_url(
            "get_object",
            Params=params,
            ExpiresIn=ttl_seconds,
        )
