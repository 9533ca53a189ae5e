import logging

import pytest

from pmpulse.auth.resolvers.env import EnvTokenResolver
from pmpulse.auth.resolvers.static import StaticTokenResolver
from pmpulse.contracts.exceptions import AuthenticationError


@pytest.mark.asyncio
async def test_env_token_resolver_returns_token_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITLAB_TOKEN", " glpat-123 ")

    assert await EnvTokenResolver().resolve() == "glpat-123"


@pytest.mark.asyncio
async def test_env_token_resolver_raises_when_env_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITLAB_TOKEN", raising=False)

    with pytest.raises(AuthenticationError):
        await EnvTokenResolver().resolve()


@pytest.mark.asyncio
async def test_env_token_resolver_raises_when_env_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITLAB_TOKEN", "   ")

    with pytest.raises(AuthenticationError):
        await EnvTokenResolver().resolve()


@pytest.mark.asyncio
async def test_static_token_resolver_strips_token() -> None:
    assert await StaticTokenResolver(token="  glpat-xyz\n").resolve() == "glpat-xyz"


@pytest.mark.asyncio
async def test_static_token_resolver_rejects_blank_token() -> None:
    with pytest.raises(AuthenticationError):
        await StaticTokenResolver(token=" ").resolve()


@pytest.mark.asyncio
async def test_env_token_resolver_reads_custom_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CI_GITLAB_TOKEN", "glcbt-abc")

    resolver = EnvTokenResolver(variable="CI_GITLAB_TOKEN")

    assert await resolver.resolve() == "glcbt-abc"
    assert resolver.source == "$CI_GITLAB_TOKEN"


@pytest.mark.asyncio
async def test_unrecognized_token_format_is_used_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="pmpulse.auth.base")

    assert await StaticTokenResolver(token="short!").resolve() == "short!"
    assert "unrecognized format" in caplog.text
    assert "short!" not in caplog.text


@pytest.mark.asyncio
async def test_missing_token_error_names_source(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITLAB_TOKEN", raising=False)

    with pytest.raises(AuthenticationError, match=r"\$GITLAB_TOKEN"):
        await EnvTokenResolver().resolve()
