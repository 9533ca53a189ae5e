"""Pick a token resolver from the configured auth mode."""

from __future__ import annotations

from collections.abc import Callable

from pmpulse.auth.base import TokenResolver
from pmpulse.auth.resolvers.env import EnvTokenResolver
from pmpulse.auth.resolvers.static import StaticTokenResolver
from pmpulse.contracts.config import PmPulseConfig
from pmpulse.contracts.exceptions import ConfigError

RESOLVERS: dict[str, Callable[[PmPulseConfig], TokenResolver]] = {
    "env": lambda config: EnvTokenResolver(),
    "token": lambda config: StaticTokenResolver(token=config.token or ""),
}


def create_token_resolver(config: PmPulseConfig) -> TokenResolver:
    build = RESOLVERS.get(config.auth)
    if build is None:
        raise ConfigError(f"Unknown auth mode: {config.auth}")
    return build(config)
