"""Key/value persistence contract and context-scoped key derivation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class StoreKey(StrEnum):
    CONFIG = "config"
    PROJECTS = "projects"
    GROUPS = "groups"
    PROJECT_GROUPS = "projectGroups"
    ACTIVE_PROJECT_ID = "activeProjectId"
    ACTIVE_GROUP_ID = "activeGroupId"
    TEAM_CONFIG = "teamConfig"
    SPRINT_CAPACITY = "sprintCapacity"
    CAPACITY_SETTINGS = "capacitySettings"
    ABSENCES = "absences"
    FORECASTS = "forecasts"
    STAKEHOLDERS = "stakeholders"
    COMMUNICATION_HISTORY = "communicationHistory"
    COMMUNICATION_TEMPLATES = "communicationTemplates"
    DECISIONS = "decisions"
    DOCUMENTS = "documents"
    HEALTH_SCORE_CONFIG = "healthScoreConfig"
    RISKS = "risks"


class KeyValueStore(ABC):
    """Namespaced store of JSON-serialisable values under string keys.

    Every operation is atomic with respect to the namespace it is bound to.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...

    @abstractmethod
    def list_keys(self, prefix: str = "") -> list[str]: ...

    @abstractmethod
    def clear(self) -> None: ...


class StoreContext(BaseModel):
    """Active context used to derive effective keys: pod > project > global."""

    project_id: str | None = None
    pod_id: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, value: str) -> StoreContext:
        """Parse ``global``, ``project:<id>`` or ``pod:<id>``."""
        raw = (value or "").strip()
        if not raw or raw == "global":
            return cls()
        kind, _, ident = raw.partition(":")
        if kind == "project":
            return cls(project_id=ident.strip() or None)
        if kind == "pod":
            return cls(pod_id=ident.strip() or None)
        raise ValueError(f"invalid store context: {value!r}")

    @property
    def is_global(self) -> bool:
        return self.pod_id is None and self._project() is None

    def key_for(self, base_key: str) -> str:
        if self.pod_id:
            return f"{base_key}_pod_{self.pod_id}"
        project = self._project()
        if project:
            return f"{base_key}_{project}"
        return base_key

    def _project(self) -> str | None:
        if not self.project_id or self.project_id == "cross-project":
            return None
        return self.project_id
