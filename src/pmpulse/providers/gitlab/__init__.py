"""GitLab provider."""

from pmpulse.providers.gitlab.provider import GitLabProvider

__all__ = ["GitLabProvider"]
