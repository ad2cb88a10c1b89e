import asyncio
import io

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from shared.clients.extract.ExtractClientInterface import ExtractClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.document import PDF_MIME_TYPE
from shared.models.errors import ExtractionError


class ExtractClientPypdf(ExtractClientInterface):
    """Local PDF text extraction with pypdf, run in a worker thread."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._max_pages = int(self.get_config_val("MAX_PAGES", default=500, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Pypdf"

    def _get_supported_mime_types(self) -> list[str]:
        return [PDF_MIME_TYPE]

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="MAX_PAGES", val_type="number", default=500),
        ]

    async def do_healthcheck(self) -> bool:
        return True

    ##########################################
    ############ ENGINE PRIMITIVES ###########
    ##########################################

    def _read_pdf(self, data: bytes, filename: str) -> str:
        try:
            reader = PdfReader(io.BytesIO(data))
            pages = reader.pages[: self._max_pages]
            if len(reader.pages) > self._max_pages:
                self.logging.warning(
                    "PDF '%s' has %d pages, extracting the first %d only.",
                    filename, len(reader.pages), self._max_pages,
                )
            return "\n\n".join((page.extract_text() or "").strip() for page in pages).strip()
        except PdfReadError as exc:
            raise ExtractionError(f"'{filename}' is not a readable PDF: {exc}") from exc

    async def _extract(self, data: bytes, filename: str, mime_type: str) -> str:
        # pypdf is CPU bound; keep the event loop free for sibling requests
        return await asyncio.to_thread(self._read_pdf, data, filename)
