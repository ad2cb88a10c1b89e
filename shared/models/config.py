from typing import Literal

from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client needs before it can boot.

    Attributes:
        env_key (str): The raw key, without the "<TYPE>_<ENGINE>_" prefix (e.g. "BUCKET" for BLOB_S3_BUCKET).
        val_type (str): How the value is parsed by HelperConfig: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Fallback value. None marks the setting as required.
    """

    env_key: str
    val_type: Literal["string", "number", "bool", "list"] = "string"
    default: str | int | float | bool | list | None = None
