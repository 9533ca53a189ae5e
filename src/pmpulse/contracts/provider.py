"""Upstream tracker adapter contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

from pmpulse.contracts.models import Epic, Issue, LabelEvent, Milestone, ProjectInfo


class Provider(ABC):
    @abstractmethod
    async def __aenter__(self) -> Provider: ...

    @abstractmethod
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...

    @abstractmethod
    async def get_project(self, project_id: str) -> ProjectInfo: ...

    @abstractmethod
    async def list_issues(self, project_id: str) -> list[Issue]: ...

    @abstractmethod
    async def list_milestones(self, project_id: str) -> list[Milestone]: ...

    @abstractmethod
    async def list_group_epics(self, group_path: str) -> list[Epic]:
        """Return the epics of a group; raise ``FeatureUnavailableError`` when epics are not available."""

    @abstractmethod
    async def list_group_projects(self, group_path: str) -> list[ProjectInfo]: ...

    @abstractmethod
    async def list_label_events(self, project_id: int, issue_iid: int) -> list[LabelEvent]:
        """Return label events of one issue; raise ``FeatureUnavailableError`` when unsupported."""

    @abstractmethod
    async def supports_state_events(self, project_id: int, issue_iid: int) -> bool: ...

    @abstractmethod
    async def update_issue_assignee(self, project_id: int, issue_iid: int, assignee_id: int) -> Issue: ...
