import pytest
from pydantic import ValidationError

from golden_keys.config import Settings
from golden_keys.constants.vocabulary import DATA_TYPES, resolve_data_types
from golden_keys.services.golden_key_gateway import (
    HttpGoldenKeyGateway,
    JsonFileGoldenKeyGateway,
    build_gateway,
)


def test_comma_separated_settings_are_split(monkeypatch) -> None:
    monkeypatch.setenv("GOLDEN_KEY_DATA_TYPES", "String, UUID ,,")
    monkeypatch.setenv("FRONTEND_ORIGINS", "http://a.example.com, http://b.example.com")

    settings = Settings()

    assert settings.golden_key_data_types == ["string", "uuid"]
    assert settings.frontend_origins == ["http://a.example.com", "http://b.example.com"]


def test_blank_data_types_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("GOLDEN_KEY_DATA_TYPES", " , ")

    assert Settings().golden_key_data_types is None


def test_gateway_name_is_normalized(monkeypatch) -> None:
    monkeypatch.setenv("GOLDEN_KEY_GATEWAY", " HTTP ")

    assert Settings().golden_key_gateway == "http"


def test_unknown_gateway_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("GOLDEN_KEY_GATEWAY", "ftp")

    with pytest.raises(ValidationError):
        Settings()


def test_build_gateway_selects_json_store(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("GOLDEN_KEY_GATEWAY", "json")
    monkeypatch.setenv("GOLDEN_KEY_STORE_DIR", str(tmp_path))

    gateway = build_gateway(Settings())

    assert isinstance(gateway, JsonFileGoldenKeyGateway)
    assert gateway.directory == tmp_path


def test_build_gateway_selects_http_service(monkeypatch) -> None:
    monkeypatch.setenv("GOLDEN_KEY_GATEWAY", "http")
    monkeypatch.setenv("GOLDEN_KEY_SERVICE_URL", "https://keys.example.com")

    assert isinstance(build_gateway(Settings()), HttpGoldenKeyGateway)


def test_resolve_data_types_defaults_to_builtin_vocabulary() -> None:
    assert resolve_data_types(None) == DATA_TYPES
    assert resolve_data_types([]) == DATA_TYPES


def test_resolve_data_types_keeps_known_options_and_labels_new_ones() -> None:
    options = resolve_data_types(["email", "postal_code", "email"])

    assert [option["value"] for option in options] == ["email", "postal_code"]
    assert options[0]["label"] == "Email"
    assert options[1]["label"] == "Postal Code"
