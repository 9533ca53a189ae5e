import pytest

from pmpulse.contracts.store import StoreContext


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("global", "teamConfig"),
        ("", "teamConfig"),
        ("project:42", "teamConfig_42"),
        ("project:cross-project", "teamConfig"),
        ("project:", "teamConfig"),
        ("pod:blue", "teamConfig_pod_blue"),
    ],
)
def test_key_derivation(raw: str, expected: str) -> None:
    assert StoreContext.parse(raw).key_for("teamConfig") == expected


def test_pod_takes_precedence_over_project() -> None:
    context = StoreContext(project_id="42", pod_id="blue")

    assert context.key_for("forecasts") == "forecasts_pod_blue"
    assert not context.is_global


def test_unknown_context_kind_is_rejected() -> None:
    with pytest.raises(ValueError, match="invalid store context"):
        StoreContext.parse("team:1")


def test_cross_project_is_global() -> None:
    assert StoreContext(project_id="cross-project").is_global
