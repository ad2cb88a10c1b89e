from shared.clients.HttpClientInterface import HttpClientInterface
from shared.clients.extract.ExtractClientInterface import ExtractClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.document import PDF_MIME_TYPE


class ExtractClientTika(HttpClientInterface, ExtractClientInterface):
    """Text extraction through an Apache Tika server (PUT /tika, text/plain answer)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._mime_types = self.get_config_val("MIME_TYPES", default=[PDF_MIME_TYPE], val_type="list")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Tika"

    def _get_supported_mime_types(self) -> list[str]:
        return self._mime_types

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="MIME_TYPES", val_type="list", default=[PDF_MIME_TYPE]),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/version"

    def _get_endpoint_extract(self) -> str:
        return "/tika"

    ##########################################
    ############ ENGINE PRIMITIVES ###########
    ##########################################

    async def _extract(self, data: bytes, filename: str, mime_type: str) -> str:
        response = await self.do_request(
            method="PUT",
            content=data,
            endpoint=self._get_endpoint_extract(),
            additional_headers={"Content-Type": mime_type, "Accept": "text/plain"},
            raise_on_error=True,
        )
        return response.text
