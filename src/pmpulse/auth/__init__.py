"""Auth module public exports."""

from pmpulse.auth.base import TokenResolver
from pmpulse.auth.factory import create_token_resolver
from pmpulse.auth.tokens import TokenFormat, describe_token

__all__ = ["TokenFormat", "TokenResolver", "create_token_resolver", "describe_token"]
