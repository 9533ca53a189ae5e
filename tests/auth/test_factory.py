import pytest

from pmpulse.auth.factory import create_token_resolver
from pmpulse.auth.resolvers.env import EnvTokenResolver
from pmpulse.auth.resolvers.static import StaticTokenResolver
from pmpulse.contracts.config import PmPulseConfig
from pmpulse.contracts.exceptions import ConfigError


def test_factory_creates_env_resolver() -> None:
    resolver = create_token_resolver(PmPulseConfig(project_id="42", auth="env"))

    assert isinstance(resolver, EnvTokenResolver)


def test_factory_creates_static_resolver() -> None:
    resolver = create_token_resolver(PmPulseConfig(project_id="42", auth="token", token="glpat-abc"))

    assert isinstance(resolver, StaticTokenResolver)
    assert resolver.token == "glpat-abc"


def test_factory_raises_for_unknown_auth_mode() -> None:
    config = PmPulseConfig.model_construct(project_id="42", auth="oauth", token=None)

    with pytest.raises(ConfigError, match="Unknown auth mode"):
        create_token_resolver(config)
