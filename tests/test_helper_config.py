import logging

import pytest

from shared.helper.HelperConfig import HelperConfig


@pytest.fixture
def config() -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("tests"))


def test_string_value_and_default(config, monkeypatch):
    monkeypatch.setenv("SOME_KEY", "  value ")
    assert config.get_string_val("some_key") == "value"
    assert config.get_string_val("MISSING_KEY", default="fallback") == "fallback"


def test_missing_string_without_default_raises(config, monkeypatch):
    monkeypatch.delenv("MISSING_KEY", raising=False)
    with pytest.raises(ValueError, match="MISSING_KEY"):
        config.get_string_val("MISSING_KEY")


def test_number_values(config, monkeypatch):
    monkeypatch.setenv("BLOB_TIMEOUT", "2.5")
    monkeypatch.setenv("EXTRACT_PYPDF_MAX_PAGES", "10")
    assert config.get_number_val("BLOB_TIMEOUT") == 2.5
    assert config.get_number_val("EXTRACT_PYPDF_MAX_PAGES") == 10
    monkeypatch.setenv("BLOB_TIMEOUT", "soon")
    with pytest.raises(ValueError, match="not a valid number"):
        config.get_number_val("BLOB_TIMEOUT")


def test_bool_values(config, monkeypatch):
    monkeypatch.setenv("FLAG", "Yes")
    assert config.get_bool_val("FLAG") is True
    monkeypatch.setenv("FLAG", "off")
    assert config.get_bool_val("FLAG") is False
    monkeypatch.delenv("FLAG")
    assert config.get_bool_val("FLAG", default=True) is True


def test_list_values(config, monkeypatch):
    monkeypatch.setenv("EXTRACT_ENGINES", "[pypdf, tika]")
    assert config.get_list_val("EXTRACT_ENGINES") == ["pypdf", "tika"]
    monkeypatch.setenv("EXTRACT_ENGINES", "[]")
    assert config.get_list_val("EXTRACT_ENGINES", default=["pypdf"]) == []
    monkeypatch.delenv("EXTRACT_ENGINES")
    assert config.get_list_val("EXTRACT_ENGINES", default=["pypdf"]) == ["pypdf"]


def test_list_without_brackets_raises(config, monkeypatch):
    monkeypatch.setenv("EXTRACT_ENGINES", "pypdf,tika")
    with pytest.raises(ValueError, match="format"):
        config.get_list_val("EXTRACT_ENGINES")


def test_blank_value_counts_as_unset(config, monkeypatch):
    monkeypatch.setenv("SOME_KEY", "   ")
    assert config.get_string_val("SOME_KEY", default="fallback") == "fallback"
    with pytest.raises(ValueError, match="SOME_KEY"):
        config.get_number_val("SOME_KEY")
