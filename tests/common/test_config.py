from __future__ import annotations

import pytest

from jellysync.config import (
    MissingConfigurationError,
    get_integration_token,
    load_settings,
    optional_env_var,
    require_env_vars,
    require_integration_token,
)
from jellysync.config.env import env_prefix


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_raises_when_any_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_VAR", raising=False)
    monkeypatch.setenv("BLANK_VAR", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_VAR", "BLANK_VAR"])

    assert exc.value.names == ("BLANK_VAR", "MISSING_VAR")
    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)


def test_optional_env_var_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  ")
    assert optional_env_var("EXAMPLE_VAR") is None

    monkeypatch.setenv("EXAMPLE_VAR", " value ")
    assert optional_env_var("EXAMPLE_VAR") == "value"


def test_env_prefix_normalizes_provider() -> None:
    assert env_prefix("balena-api") == "JELLYSYNC_BALENA_API_"


def test_integration_token_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JELLYSYNC_FRONT_APP_ID", "app")
    monkeypatch.setenv("JELLYSYNC_FRONT_APP_SECRET", "secret")
    monkeypatch.setenv("JELLYSYNC_FRONT_TOKEN_SIGNATURE", "sig")
    monkeypatch.setenv("JELLYSYNC_FRONT_TOKEN_API", "")

    token = get_integration_token("front")

    assert token is not None
    assert token.has_app_credentials
    assert token.get("signature") == "sig"
    assert token.get("api") is None


def test_integration_token_absent(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("APP_ID", "APP_SECRET", "TOKEN_API"):
        monkeypatch.delenv(f"JELLYSYNC_NOWHERE_{name}", raising=False)

    assert get_integration_token("nowhere") is None
    with pytest.raises(MissingConfigurationError):
        require_integration_token("nowhere")


def test_api_key_only_token_has_no_app_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JELLYSYNC_TYPEFORM_TOKEN_API", "key")
    monkeypatch.delenv("JELLYSYNC_TYPEFORM_APP_ID", raising=False)
    monkeypatch.delenv("JELLYSYNC_TYPEFORM_APP_SECRET", raising=False)

    token = get_integration_token("typeform")

    assert token is not None
    assert not token.has_app_credentials
    assert token.get("api") == "key"


def test_load_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JELLYSYNC_DEFAULT_USER", "jellysync-bot")
    monkeypatch.delenv("JELLYSYNC_OAUTH_ORIGIN", raising=False)

    settings = load_settings(dotenv=False)

    assert settings.default_user == "jellysync-bot"
    assert settings.origin_url is None
