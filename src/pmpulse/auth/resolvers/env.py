"""Read the access token from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from pmpulse.auth.base import TokenResolver

TOKEN_ENV_VAR = "GITLAB_TOKEN"


@dataclass(frozen=True)
class EnvTokenResolver(TokenResolver):
    variable: str = TOKEN_ENV_VAR

    @property
    def source(self) -> str:
        return f"${self.variable}"

    async def _raw_token(self) -> str | None:
        return os.getenv(self.variable)
