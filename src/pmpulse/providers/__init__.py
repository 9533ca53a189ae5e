"""Provider implementations and factory."""

from pmpulse.providers.factory import create_provider
from pmpulse.providers.gitlab import GitLabProvider

__all__ = ["GitLabProvider", "create_provider"]
