"""Concrete token resolvers."""

from pmpulse.auth.resolvers.env import EnvTokenResolver
from pmpulse.auth.resolvers.static import StaticTokenResolver

__all__ = ["EnvTokenResolver", "StaticTokenResolver"]
