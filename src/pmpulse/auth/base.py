"""Access token resolution for the GitLab provider."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from pmpulse.auth.tokens import describe_token
from pmpulse.contracts.exceptions import AuthenticationError

_LOG = logging.getLogger(__name__)


class TokenResolver(ABC):
    """Produces the token sent as ``PRIVATE-TOKEN`` on every request."""

    @property
    def source(self) -> str:
        return "token"

    @abstractmethod
    async def _raw_token(self) -> str | None: ...

    async def resolve(self) -> str:
        token = (await self._raw_token() or "").strip()
        if not token:
            raise AuthenticationError(f"No GitLab access token found ({self.source})")
        fmt = describe_token(token)
        if not fmt.valid:
            # GitLab decides; an odd-looking token is still sent.
            _LOG.warning("Access token from %s has an unrecognized format", self.source)
        else:
            _LOG.debug("Using %s from %s", fmt.kind, self.source)
        return token
