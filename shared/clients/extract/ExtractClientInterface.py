import asyncio
from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import ExtractionError


class ExtractClientInterface(ClientInterface):
    """Turns the bytes of one attachment into plain text for the search corpus."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "extract"

    @abstractmethod
    def _get_supported_mime_types(self) -> list[str]:
        """
        Returns the MIME types this engine can extract text from (e.g. ["application/pdf"]).
        """
        pass

    def supports(self, mime_type: str) -> bool:
        """Whether the engine can extract text from the given MIME type.

        Parameters such as "; charset=binary" are ignored.
        """
        base_type = (mime_type or "").split(";")[0].strip().lower()
        return base_type in {t.lower() for t in self._get_supported_mime_types()}

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_extract(self, data: bytes, filename: str, mime_type: str) -> str:
        """Extract plain text from a file.

        Args:
            data (bytes): The raw file.
            filename (str): Original filename, used in logs only.
            mime_type (str): Stored MIME type of the file.

        Returns:
            str: The extracted text, stripped. May be empty.

        Raises:
            ExtractionError: On timeout, unreadable input or engine failure.
        """
        try:
            text = await asyncio.wait_for(self._extract(data, filename, mime_type), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise ExtractionError(f"Extraction of '{filename}' timed out after {self.timeout}s") from exc
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"Extraction of '{filename}' failed: {exc}") from exc
        text = (text or "").strip()
        self.logging.debug("Extracted %d chars from '%s' with %s", len(text), filename, self.get_engine_name())
        return text

    @abstractmethod
    async def _extract(self, data: bytes, filename: str, mime_type: str) -> str:
        pass
