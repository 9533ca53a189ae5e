"""GitLab REST provider adapter."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from pmpulse.contracts.exceptions import (
    AuthenticationError,
    FeatureUnavailableError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    ProviderError,
    UpstreamError,
)
from pmpulse.contracts.models import Epic, Issue, LabelEvent, Milestone, ProjectInfo
from pmpulse.contracts.provider import Provider
from pmpulse.providers.gitlab._retrying_transport import RetryingTransport

_LOG = logging.getLogger(__name__)

PAGE_SIZE = 100
ModelT = TypeVar("ModelT", bound=BaseModel)


def _encode(identifier: str | int) -> str:
    return quote(str(identifier), safe="")


class GitLabProvider(Provider):
    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        max_retries: int = 0,
        epic_max_pages: int = 10,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = base_url.rstrip("/") + "/api/v4"
        self._token = token
        self._max_retries = max_retries
        self._epic_max_pages = epic_max_pages
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> GitLabProvider:
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            headers={"PRIVATE-TOKEN": self._token, "Accept": "application/json"},
            transport=RetryingTransport(transport=self._transport, max_retries=self._max_retries),
            timeout=httpx.Timeout(self._timeout),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_project(self, project_id: str) -> ProjectInfo:
        resource = f"project {project_id}"
        response = await self._request("GET", f"/projects/{_encode(project_id)}", resource=resource)
        return self._parse(ProjectInfo, self._json(response, resource), resource)

    async def list_issues(self, project_id: str) -> list[Issue]:
        resource = f"issues of project {project_id}"
        items = await self._paginate(
            f"/projects/{_encode(project_id)}/issues",
            params={"scope": "all", "with_iterations": "true"},
            resource=resource,
        )
        return [self._parse(Issue, item, resource) for item in items]

    async def list_milestones(self, project_id: str) -> list[Milestone]:
        resource = f"milestones of project {project_id}"
        items = await self._paginate(f"/projects/{_encode(project_id)}/milestones", resource=resource)
        return [self._parse(Milestone, item, resource) for item in items]

    async def list_group_epics(self, group_path: str) -> list[Epic]:
        resource = f"epics of group {group_path}"
        try:
            items = await self._paginate(
                f"/groups/{_encode(group_path)}/epics",
                resource=resource,
                max_pages=self._epic_max_pages,
            )
        except NotFoundError as exc:
            raise FeatureUnavailableError(f"{resource}: epics are not available", feature="epics") from exc
        return [self._parse(Epic, item, resource) for item in items]

    async def list_group_projects(self, group_path: str) -> list[ProjectInfo]:
        resource = f"projects of group {group_path}"
        items = await self._paginate(
            f"/groups/{_encode(group_path)}/projects",
            params={"include_subgroups": "true", "archived": "false"},
            resource=resource,
        )
        return [self._parse(ProjectInfo, item, resource) for item in items]

    async def list_label_events(self, project_id: int, issue_iid: int) -> list[LabelEvent]:
        resource = f"label events of issue {project_id}#{issue_iid}"
        try:
            items = await self._paginate(
                f"/projects/{_encode(project_id)}/issues/{issue_iid}/resource_label_events",
                resource=resource,
            )
        except (NotFoundError, ForbiddenError) as exc:
            raise FeatureUnavailableError(f"{resource}: label events are not available", feature="label_events") from exc
        return [self._parse(LabelEvent, item, resource) for item in items]

    async def supports_state_events(self, project_id: int, issue_iid: int) -> bool:
        resource = f"state events of issue {project_id}#{issue_iid}"
        try:
            await self._request(
                "GET",
                f"/projects/{_encode(project_id)}/issues/{issue_iid}/resource_state_events",
                params={"per_page": 1},
                resource=resource,
            )
        except (NotFoundError, ForbiddenError):
            return False
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_issue_assignee(self, project_id: int, issue_iid: int, assignee_id: int) -> Issue:
        resource = f"issue {project_id}#{issue_iid}"
        response = await self._request(
            "PUT",
            f"/projects/{_encode(project_id)}/issues/{issue_iid}",
            json={"assignee_id": assignee_id},
            resource=resource,
        )
        return self._parse(Issue, self._json(response, resource), resource)

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _paginate(
        self,
        path: str,
        *,
        resource: str,
        params: dict[str, Any] | None = None,
        max_pages: int | None = None,
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            response = await self._request(
                "GET",
                path,
                params={**(params or {}), "per_page": PAGE_SIZE, "page": page},
                resource=resource,
            )
            batch = self._json(response, resource)
            if not isinstance(batch, list):
                raise UpstreamError(f"{resource}: expected a JSON list", status_code=response.status_code)
            items.extend(batch)
            if len(batch) < PAGE_SIZE:
                break
            if max_pages is not None and page >= max_pages:
                _LOG.warning("Stopped paging %s after %d pages", resource, page, extra={"path": path})
                break
            page += 1
        return items

    async def _request(
        self,
        method: str,
        path: str,
        *,
        resource: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        client = self._require_client()
        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            raise NetworkError(f"{resource}: tracker unreachable ({exc})") from exc
        self._raise_for_status(response, resource)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, resource: str) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 401:
            raise AuthenticationError(f"{resource}: unauthorized, token is invalid or expired")
        if status == 403:
            raise ForbiddenError(f"{resource}: forbidden, token lacks the required scopes")
        if status == 404:
            raise NotFoundError(f"{resource}: not found or not accessible")
        raise UpstreamError(f"{resource}: tracker returned HTTP {status}", status_code=status)

    @staticmethod
    def _json(response: httpx.Response, resource: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"{resource}: invalid JSON response", status_code=response.status_code) from exc

    @staticmethod
    def _parse(model: type[ModelT], payload: Any, resource: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise UpstreamError(f"{resource}: unexpected payload shape: {exc}") from exc

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise ProviderError("GitLabProvider must be used as an async context manager")
        return self._client
