import pytest
from pydantic import ValidationError

from pmpulse.contracts.config import AggregationMode, CapacitySettings, PmPulseConfig, SourceConfig, SourceType


def test_single_mode_requires_project_id() -> None:
    with pytest.raises(ValidationError):
        PmPulseConfig(mode=AggregationMode.SINGLE)


def test_multi_mode_requires_sources() -> None:
    with pytest.raises(ValidationError):
        PmPulseConfig(mode=AggregationMode.MULTI)


def test_auth_token_combinations() -> None:
    PmPulseConfig(project_id="42", auth="env")
    PmPulseConfig(project_id="42", auth="token", token="glpat-abc")

    with pytest.raises(ValidationError):
        PmPulseConfig(project_id="42", auth="token")
    with pytest.raises(ValidationError):
        PmPulseConfig(project_id="42", auth="env", token="glpat-abc")
    with pytest.raises(ValidationError):
        PmPulseConfig(project_id="42", auth="oauth")


def test_concurrency_limits_are_bounded() -> None:
    with pytest.raises(ValidationError):
        PmPulseConfig(project_id="42", max_concurrent_sources=6)
    with pytest.raises(ValidationError):
        PmPulseConfig(project_id="42", max_concurrent_label_events=11)


def test_invalid_active_context_is_rejected() -> None:
    with pytest.raises(ValidationError):
        PmPulseConfig(project_id="42", active_context="team:7")


def test_config_is_frozen() -> None:
    config = PmPulseConfig(project_id="42")

    with pytest.raises(ValidationError):
        config.project_id = "43"  # type: ignore[misc]


def test_defaults() -> None:
    config = PmPulseConfig(project_id="42")

    assert config.gitlab_url == "https://gitlab.com"
    assert config.filter_by_year == 2025
    assert config.max_concurrent_sources == 5
    assert config.max_retries == 0
    assert config.label_event_ttl_seconds == 300


@pytest.mark.parametrize(
    ("source_type", "fields"),
    [
        (SourceType.PROJECT, {}),
        (SourceType.GROUP, {}),
        (SourceType.PROJECT_GROUP, {"project_id": "42"}),
        (SourceType.PROJECT_GROUP, {"group_paths": ["org"]}),
    ],
)
def test_source_config_requires_fields_for_type(source_type: SourceType, fields: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        SourceConfig(id="s1", type=source_type, **fields)


def test_source_config_display_name_fallbacks() -> None:
    assert SourceConfig(id="s1", name="Web", type=SourceType.PROJECT, project_id="42").display_name == "Web"
    assert SourceConfig(id="s1", type=SourceType.PROJECT, project_id="42").display_name == "42"
    assert SourceConfig(id="s1", type=SourceType.GROUP, group_paths=["a", "b"]).display_name == "a, b"


def test_single_mode_source_list_expands_to_one_source() -> None:
    plain = PmPulseConfig(project_id="org/web").source_list()
    with_groups = PmPulseConfig(project_id="org/web", group_paths=["org"]).source_list()

    assert [source.type for source in plain] == [SourceType.PROJECT]
    assert with_groups[0].type == SourceType.PROJECT_GROUP
    assert with_groups[0].group_paths == ["org"]


def test_multi_mode_source_list_skips_disabled_sources() -> None:
    config = PmPulseConfig(
        mode=AggregationMode.MULTI,
        sources=[
            SourceConfig(id="a", type=SourceType.PROJECT, project_id="1"),
            SourceConfig(id="b", type=SourceType.PROJECT, project_id="2", enabled=False),
        ],
    )

    assert [source.id for source in config.source_list()] == ["a"]


def test_capacity_settings_defaults() -> None:
    settings = CapacitySettings()

    assert settings.hours_per_story_point == 8
    assert settings.default_hours_per_issue == 4
    assert settings.default_weekly_capacity == 40
    assert settings.static_hours_per_story_point == 6
