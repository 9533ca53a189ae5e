"""Provider factory."""

from __future__ import annotations

import httpx

from pmpulse.contracts.config import PmPulseConfig
from pmpulse.contracts.provider import Provider
from pmpulse.providers.gitlab.provider import GitLabProvider


def create_provider(
    config: PmPulseConfig,
    *,
    token: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Provider:
    """Create the tracker provider for *config*.

    The returned provider is an async context manager::

        async with create_provider(config, token=token) as provider:
            issues = await provider.list_issues("42")
    """
    return GitLabProvider(
        base_url=config.gitlab_url,
        token=token,
        max_retries=config.max_retries,
        epic_max_pages=config.epic_max_pages,
        timeout=config.request_timeout_seconds,
        transport=transport,
    )
