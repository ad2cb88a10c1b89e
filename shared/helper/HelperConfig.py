"""Environment-backed settings of the document attachment service.

Keys are upper-cased before the lookup and a blank variable counts as unset.
Every getter raises ValueError for an unset key that has no default.
"""

import logging
import os

_TRUE_VALUES = ("true", "1", "yes")


class HelperConfig:
    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _read(self, key: str, has_default: bool) -> str | None:
        raw = (os.getenv(key.upper()) or "").strip()
        if not raw and not has_default:
            raise ValueError(f"Environment variable '{key.upper()}' is not set.")
        return raw or None

    def get_string_val(self, key: str, default: str | None = None) -> str:
        raw = self._read(key, default is not None)
        return raw if raw is not None else default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read an int, or a float when the value has a decimal point."""
        raw = self._read(key, default is not None)
        if raw is None:
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        raw = self._read(key, default is not None)
        if raw is None:
            return default
        return raw.lower() in _TRUE_VALUES

    def get_list_val(self, key: str, default: list | None = None) -> list[str]:
        """Read a list written as "[a,b,...]". "[]" is an empty list, not unset."""
        raw = self._read(key, default is not None)
        if raw is None:
            return default
        if not raw.startswith("[") or not raw.endswith("]"):
            raise ValueError(f"Environment variable '{key.upper()}' must be in the format '[a,b,...]'. Got: '{raw}'")
        return [element.strip() for element in raw[1:-1].split(",") if element.strip()]

    def get_logger(self) -> logging.Logger:
        return self._logger
