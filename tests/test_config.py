from __future__ import annotations

import logging

import pytest

from goldshore_gateway.config import (
    get_gateway_config,
    load_gateway_config,
    reset_config_cache,
)
from goldshore_gateway.cors import DEFAULT_ALLOW_HEADERS


def test_defaults_are_fail_closed() -> None:
    cfg = load_gateway_config({})
    assert cfg.allowed_origins == ()
    assert cfg.assertion_header == "cf-access-jwt-assertion"
    assert cfg.email_header == "cf-access-authenticated-user-email"
    assert cfg.scopes_header == "x-access-scopes"
    assert cfg.cors_allow_headers == DEFAULT_ALLOW_HEADERS
    assert cfg.cors_max_age_s == 86400
    assert cfg.log_level == logging.INFO


def test_allow_list_env_precedence() -> None:
    cfg = load_gateway_config(
        {
            "GATEWAY_CORS_ALLOWED_ORIGINS": "https://a.example",
            "CORS_ORIGINS": "https://b.example",
        }
    )
    assert cfg.allowed_origins == ("https://a.example",)
    fallback = load_gateway_config({"CORS_ORIGINS": "https://b.example, https://c.example"})
    assert fallback.allowed_origins == ("https://b.example", "https://c.example")


def test_blank_primary_variable_disables_fallback() -> None:
    cfg = load_gateway_config({"GATEWAY_CORS_ALLOWED_ORIGINS": "", "CORS_ORIGINS": "https://b.example"})
    assert cfg.allowed_origins == ()


def test_header_names_are_lowercased() -> None:
    cfg = load_gateway_config({"GATEWAY_SCOPES_HEADER": " X-Team-Scopes "})
    assert cfg.scopes_header == "x-team-scopes"


def test_blank_header_name_is_rejected() -> None:
    with pytest.raises(ValueError):
        load_gateway_config({"GATEWAY_EMAIL_HEADER": "  "})


@pytest.mark.parametrize("raw, expected", [("600", 600), ("-5", 0), ("soon", 86400), ("", 86400)])
def test_max_age_parsing(raw: str, expected: int) -> None:
    assert load_gateway_config({"GATEWAY_CORS_MAX_AGE_S": raw}).cors_max_age_s == expected


@pytest.mark.parametrize("raw, expected", [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("loud", logging.INFO)])
def test_log_level_parsing(raw: str, expected: int) -> None:
    assert load_gateway_config({"GATEWAY_LOG_LEVEL": raw}).log_level == expected


def test_public_view_has_no_header_names() -> None:
    cfg = load_gateway_config({"GATEWAY_CORS_ALLOWED_ORIGINS": "https://a.example"})
    assert cfg.public_view() == {"corsAllowedOrigins": ["https://a.example"]}


def test_cached_config_reads_environment_once(monkeypatch) -> None:
    reset_config_cache()
    monkeypatch.setenv("GATEWAY_CORS_ALLOWED_ORIGINS", "https://first.example")
    first = get_gateway_config()
    monkeypatch.setenv("GATEWAY_CORS_ALLOWED_ORIGINS", "https://second.example")
    assert get_gateway_config() is first
    reset_config_cache()
    assert get_gateway_config().allowed_origins == ("https://second.example",)
    reset_config_cache()
