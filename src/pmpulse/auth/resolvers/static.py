"""Token given inline in the config file."""

from __future__ import annotations

from dataclasses import dataclass

from pmpulse.auth.base import TokenResolver


@dataclass(frozen=True)
class StaticTokenResolver(TokenResolver):
    token: str

    @property
    def source(self) -> str:
        return "config token"

    async def _raw_token(self) -> str | None:
        return self.token
