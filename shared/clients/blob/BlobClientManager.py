from shared.helper.HelperConfig import HelperConfig
from shared.clients.blob.BlobClientInterface import BlobClientInterface


class BlobClientManager:
    """Manager class to instantiate the configured blob store client."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """Read the blob engine name from env configuration.

        Returns:
            str: Capitalised engine name (e.g. "S3").

        Raises:
            ValueError: If BLOB_ENGINE is empty.
        """
        engine = self.helper_config.get_string_val("BLOB_ENGINE", default="S3")
        if not engine:
            raise ValueError("No blob engine specified in configuration (BLOB_ENGINE).")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> BlobClientInterface:
        """Instantiate the blob client for the configured engine.

        Returns:
            BlobClientInterface: The instantiated client.

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"BlobClient{engine}"
        try:
            module = __import__(
                f"shared.clients.blob.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
            client = client_class(helper_config=self.helper_config)
            self.logging.debug("Instantiated blob client for engine: %s", engine)
            return client
        except (ImportError, AttributeError) as e:
            raise ValueError("Unsupported blob engine '%s'. Error: %s" % (engine, e))

    def get_client(self) -> BlobClientInterface:
        """Return the instantiated blob client."""
        return self.client
