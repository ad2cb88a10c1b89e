from shared.helper.HelperConfig import HelperConfig
from shared.clients.meta.MetaClientInterface import MetaClientInterface


class MetaClientManager:
    """Manager class to instantiate the configured metadata store client."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """Read the metadata engine name from env configuration.

        Returns:
            str: Capitalised engine name (e.g. "Mongo").

        Raises:
            ValueError: If META_ENGINE is empty.
        """
        engine = self.helper_config.get_string_val("META_ENGINE", default="Mongo")
        if not engine:
            raise ValueError("No metadata engine specified in configuration (META_ENGINE).")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> MetaClientInterface:
        """Instantiate the metadata client for the configured engine.

        Returns:
            MetaClientInterface: The instantiated client.

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"MetaClient{engine}"
        try:
            module = __import__(
                f"shared.clients.meta.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
            client = client_class(helper_config=self.helper_config)
            self.logging.debug("Instantiated metadata client for engine: %s", engine)
            return client
        except (ImportError, AttributeError) as e:
            raise ValueError("Unsupported metadata engine '%s'. Error: %s" % (engine, e))

    def get_client(self) -> MetaClientInterface:
        """Return the instantiated metadata client."""
        return self.client
