import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, TypeVar

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import ServiceError, UpstreamError

T = TypeVar("T")


class ClientInterface(ABC):
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Validates that all required configuration values for the client are set and valid.

        Raises:
            ValueError: If any required configuration value is missing or invalid.
        """
        for config in self._get_required_config():
            _ = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """
        Returns the type of the client in lowercase. E.g. "blob"
        """
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "blob"
        """
        pass

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client. E.g. "s3"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client. E.g. "S3"
        """
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns all required configurations for the client.

        Returns:
            list[EnvConfig]: A list containing the details of each required configuration key.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """
        Returns:
            str: The full configuration key name for the client. E.g. "BLOB_S3_BUCKET"
        """
        key_prefix = f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}"
        return f"{key_prefix}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Retrieves the value of a configuration key for the client.

        Args:
            raw_key (str): The raw configuration key name
            default (Any): The default value to return if the configuration key is not set
            val_type (str): The type of the configuration value ("string", "number", "bool", "list")
        """
        key = self._get_config_key_name(raw_key)
        if val_type == "string":
            return self._helper_config.get_string_val(key, default=default)
        elif val_type == "number":
            return self._helper_config.get_number_val(key, default=default)
        elif val_type == "bool":
            return self._helper_config.get_bool_val(key, default=default)
        elif val_type == "list":
            return self._helper_config.get_list_val(key, default=default)
        else:
            raise ValueError(f"Unsupported config value type '{val_type}' for env key '{raw_key}' in {self.get_client_type().upper()} client '{self.get_engine_name()}'.")

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_healthcheck(self) -> bool:
        """Check whether the client backend is reachable.

        Returns:
            bool: True if the backend answered successfully.
        """
        pass

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        """Initialise connections and any other resources needed for making requests."""
        pass

    async def close(self) -> None:
        """Close connections and any other resources."""
        pass

    async def _with_deadline(self, awaitable: Awaitable[T], operation: str, document_id: str | None = None, blob_keys: list[str] | None = None) -> T:
        """Await a backend call under the client deadline.

        Service errors raised by the engine pass through unchanged. A timeout or
        any other backend exception is turned into an UpstreamError, so callers
        only ever see the service taxonomy.

        Args:
            awaitable: The backend call.
            operation: Short name used in logs and error messages (e.g. "put").
            document_id: Document the call belongs to, if any.
            blob_keys: Blob keys the call touches, if any.

        Raises:
            ServiceError: Raised by the engine itself.
            UpstreamError: On timeout or unexpected backend failure.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except ServiceError:
            raise
        except asyncio.TimeoutError as exc:
            self.logging.error(
                "%s %s '%s' timed out after %ss",
                self.get_client_type().upper(), operation, self.get_engine_name(), self.timeout,
            )
            raise UpstreamError(
                f"{self.get_client_type()} {operation} timed out after {self.timeout}s",
                document_id=document_id,
                blob_keys=blob_keys,
            ) from exc
        except Exception as exc:
            self.logging.error(
                "%s %s '%s' failed: %s",
                self.get_client_type().upper(), operation, self.get_engine_name(), exc,
            )
            raise UpstreamError(
                f"{self.get_client_type()} {operation} failed: {exc}",
                document_id=document_id,
                blob_keys=blob_keys,
            ) from exc
