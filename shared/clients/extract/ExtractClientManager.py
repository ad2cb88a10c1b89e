from shared.helper.HelperConfig import HelperConfig
from shared.clients.extract.ExtractClientInterface import ExtractClientInterface


class ExtractClientManager:
    """
    Manager class to handle multiple text extraction clients based on configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.clients = self._initialize_clients()

    def _get_engines_from_env(self) -> list[str]:
        """
        Reads the list of extraction engines from ENV configuration, in priority order.

        Returns:
            list[str]: A list of capitalised engine names (e.g. ["Pypdf", "Tika"]).
        """
        engines = self.helper_config.get_list_val("EXTRACT_ENGINES", default=["Pypdf"])
        return [engine.strip().lower().capitalize() for engine in engines]

    def _initialize_clients(self) -> list[ExtractClientInterface]:
        """
        Initializes extraction clients based on the engines specified in the configuration.

        An empty EXTRACT_ENGINES list is allowed and disables extraction entirely.

        Returns:
            list[ExtractClientInterface]: The instantiated clients, in priority order.

        Raises:
            ValueError: If an engine is unsupported.
        """
        clients = []
        for engine in self._get_engines_from_env():
            className = f"ExtractClient{engine}"
            try:
                module = __import__(
                    f"shared.clients.extract.{engine.lower()}.{className}",
                    fromlist=[className],
                )
                client_class = getattr(module, className)
                clients.append(client_class(helper_config=self.helper_config))
                self.logging.debug(f"Instantiated extract client for engine: {engine}")
            except (ImportError, AttributeError) as e:
                raise ValueError(f"Unsupported extract engine specified: '{engine}'. Error: {e}")
        if not clients:
            self.logging.warning("No extract engines configured. Attachment text will not be searchable.")
        return clients

    def get_clients(self) -> list[ExtractClientInterface]:
        """
        Returns the list of instantiated extraction clients.

        Returns:
            list[ExtractClientInterface]: The list of extraction client instances.
        """
        return self.clients
