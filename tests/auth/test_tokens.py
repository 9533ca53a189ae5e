import pytest

from pmpulse.auth.tokens import TokenFormat, describe_token


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("glpat-abcdef", TokenFormat(True, "Personal Access Token")),
        ("glpat_abcdef", TokenFormat(True, "Project/Deploy Token")),
        ("gldt-abcdef", TokenFormat(True, "Project/Deploy Token")),
        ("glcbt-abcdef", TokenFormat(True, "CI Job Token")),
        ("a" * 20, TokenFormat(True, "Legacy Token")),
        ("short", TokenFormat(False, "unknown")),
        ("has spaces in it but is long", TokenFormat(False, "unknown")),
        ("", TokenFormat(False, "none")),
        (None, TokenFormat(False, "none")),
    ],
)
def test_describe_token(token: str | None, expected: TokenFormat) -> None:
    assert describe_token(token) == expected
