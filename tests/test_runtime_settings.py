import pytest

from shared.runtime_settings import (
    DEFAULT_DEV_CORS_ALLOW_ORIGINS,
    env_flag,
    load_security_settings,
    parse_cors_allowlist,
    validate_security_settings,
)


@pytest.mark.parametrize(
    "raw,default,expected",
    [("yes", False, True), ("ON", False, True), ("0", True, False), ("nope", True, False), ("", True, True)],
)
def test_env_flag(raw, default, expected) -> None:
    assert env_flag("FLAG", default=default, environ={"FLAG": raw}) is expected


def test_cors_allowlist_blank_falls_back_to_dev_origins() -> None:
    assert parse_cors_allowlist(" , ") == list(DEFAULT_DEV_CORS_ALLOW_ORIGINS)
    assert "http://localhost:5173" in DEFAULT_DEV_CORS_ALLOW_ORIGINS


def test_cors_allowlist_trims_entries() -> None:
    assert parse_cors_allowlist("https://prep.example.com , http://localhost:3000") == [
        "https://prep.example.com",
        "http://localhost:3000",
    ]


def test_defaults_are_dev_mode_without_auth() -> None:
    settings = load_security_settings({})
    assert settings.dev_mode is True
    assert settings.auth_enabled is False
    validate_security_settings(settings)


def test_production_settings_read_from_campaign_ally_keys() -> None:
    settings = load_security_settings(
        {
            "CAMPAIGN_ALLY_DEV_MODE": "0",
            "CAMPAIGN_ALLY_API_TOKEN": " s3cret ",
            "CAMPAIGN_ALLY_CORS_ALLOW_ORIGINS": "https://prep.example.com",
        }
    )
    assert settings.api_token == "s3cret"
    assert settings.cors_allow_origins == ["https://prep.example.com"]
    validate_security_settings(settings)


@pytest.mark.parametrize(
    "env,needle",
    [
        ({"CAMPAIGN_ALLY_DEV_MODE": "0"}, "API_TOKEN"),
        ({"CAMPAIGN_ALLY_DEV_MODE": "0", "CAMPAIGN_ALLY_API_TOKEN": "t", "CAMPAIGN_ALLY_CORS_ALLOW_ORIGINS": "*"}, "Wildcard"),
    ],
)
def test_production_rejects_unsafe_settings(env, needle) -> None:
    with pytest.raises(RuntimeError, match=needle):
        validate_security_settings(load_security_settings(env))
