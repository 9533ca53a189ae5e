"""Configuration contracts."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from pmpulse.contracts.store import StoreContext


class SourceType(StrEnum):
    PROJECT = "project"
    GROUP = "group"
    PROJECT_GROUP = "project-group"


class AggregationMode(StrEnum):
    SINGLE = "single"
    MULTI = "multi"


class SourceConfig(BaseModel):
    id: str
    name: str = ""
    type: SourceType
    project_id: str | None = None
    group_paths: list[str] = Field(default_factory=list)
    enabled: bool = True

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_source_fields(self) -> SourceConfig:
        if self.type in (SourceType.PROJECT, SourceType.PROJECT_GROUP) and not (self.project_id or "").strip():
            raise ValueError(f"source {self.id!r} of type {self.type} requires project_id")
        if self.type in (SourceType.GROUP, SourceType.PROJECT_GROUP) and not self.group_paths:
            raise ValueError(f"source {self.id!r} of type {self.type} requires at least one group path")
        return self

    @property
    def includes_project(self) -> bool:
        return self.type in (SourceType.PROJECT, SourceType.PROJECT_GROUP)

    @property
    def includes_groups(self) -> bool:
        return self.type in (SourceType.GROUP, SourceType.PROJECT_GROUP)

    @property
    def display_name(self) -> str:
        return self.name or self.project_id or ", ".join(self.group_paths) or self.id


class PmPulseConfig(BaseModel):
    gitlab_url: str = "https://gitlab.com"
    auth: str = "env"
    token: str | None = None
    mode: AggregationMode = AggregationMode.SINGLE
    project_id: str | None = None
    group_paths: list[str] = Field(default_factory=list)
    sources: list[SourceConfig] = Field(default_factory=list)
    filter_by_year: int | None = 2025
    max_concurrent_sources: int = Field(default=5, ge=1, le=5)
    max_concurrent_label_events: int = Field(default=10, ge=1, le=10)
    label_event_ttl_seconds: float = Field(default=300.0, gt=0)
    epic_max_pages: int = Field(default=10, ge=1)
    max_retries: int = Field(default=0, ge=0, le=5)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    store_path: Path = Path("pmpulse-store.json")
    active_context: str = "global"

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_auth_token(self) -> PmPulseConfig:
        token = (self.token or "").strip()
        if self.auth == "token":
            if not token:
                raise ValueError("token auth requires a non-empty token")
            return self
        if token:
            raise ValueError("token must be unset when auth is not 'token'")
        if self.auth not in {"env", "token"}:
            raise ValueError("auth must be one of: env, token")
        return self

    @model_validator(mode="after")
    def validate_mode(self) -> PmPulseConfig:
        if self.mode == AggregationMode.SINGLE and not (self.project_id or "").strip():
            raise ValueError("single-source mode requires project_id")
        if self.mode == AggregationMode.MULTI and not self.sources:
            raise ValueError("multi-source mode requires at least one source")
        return self

    @model_validator(mode="after")
    def validate_active_context(self) -> PmPulseConfig:
        StoreContext.parse(self.active_context)
        return self

    def source_list(self) -> list[SourceConfig]:
        """Return the enabled sources, expanding single-source mode into one source."""
        if self.mode == AggregationMode.SINGLE:
            source_type = SourceType.PROJECT_GROUP if self.group_paths else SourceType.PROJECT
            return [
                SourceConfig(
                    id="primary",
                    name=self.project_id or "",
                    type=source_type,
                    project_id=self.project_id,
                    group_paths=list(self.group_paths),
                )
            ]
        return [source for source in self.sources if source.enabled]


class CapacitySettings(BaseModel):
    hours_per_story_point: float = Field(default=8.0, gt=0)
    default_hours_per_issue: float = Field(default=4.0, gt=0)
    default_weekly_capacity: float = Field(default=40.0, ge=0)
    static_hours_per_story_point: float = Field(default=6.0, gt=0)
