"""Access token format classification.

The prefix of a token is informational only; the tracker is the authority on
whether a token is valid.
"""

from __future__ import annotations

import re
from typing import NamedTuple


class TokenFormat(NamedTuple):
    valid: bool
    kind: str


_PREFIXES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("glpat-",), "Personal Access Token"),
    (("glpat_", "gldt-"), "Project/Deploy Token"),
    (("glcbt-",), "CI Job Token"),
)
_LEGACY_TOKEN = re.compile(r"^[A-Za-z0-9_-]{20,}$")


def describe_token(token: str | None) -> TokenFormat:
    if not token:
        return TokenFormat(valid=False, kind="none")
    for prefixes, kind in _PREFIXES:
        if token.startswith(prefixes):
            return TokenFormat(valid=True, kind=kind)
    if _LEGACY_TOKEN.match(token):
        return TokenFormat(valid=True, kind="Legacy Token")
    return TokenFormat(valid=False, kind="unknown")
