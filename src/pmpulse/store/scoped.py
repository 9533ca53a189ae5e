"""Context-scoped, typed access to the key/value store."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from pmpulse.contracts.config import CapacitySettings
from pmpulse.contracts.exceptions import StoreError
from pmpulse.contracts.forecast import Forecast
from pmpulse.contracts.store import KeyValueStore, StoreContext, StoreKey
from pmpulse.contracts.team import Absence, SprintCapacityRecord, TeamConfig

T = TypeVar("T")

_ABSENCES = TypeAdapter(list[Absence])
_FORECASTS = TypeAdapter(list[Forecast])
_SPRINT_CAPACITY = TypeAdapter(dict[str, SprintCapacityRecord])
_TEAM_CONFIG = TypeAdapter(TeamConfig)
_CAPACITY_SETTINGS = TypeAdapter(CapacitySettings)


class ScopedStore:
    """Reads and writes logical keys under the active context.

    There is no merging across contexts: a project context never sees the
    global value of a key, and writes never leave the active context.
    """

    def __init__(self, store: KeyValueStore, context: StoreContext | None = None) -> None:
        self._store = store
        self._context = context or StoreContext()

    @property
    def context(self) -> StoreContext:
        return self._context

    @property
    def backend(self) -> KeyValueStore:
        return self._store

    def with_context(self, context: StoreContext) -> ScopedStore:
        return ScopedStore(self._store, context)

    def key(self, base: StoreKey | str) -> str:
        return self._context.key_for(str(base))

    def get(self, base: StoreKey | str, default: Any = None) -> Any:
        return self._store.get(self.key(base), default)

    def set(self, base: StoreKey | str, value: Any) -> None:
        self._store.set(self.key(base), value)

    def remove(self, base: StoreKey | str) -> None:
        self._store.remove(self.key(base))

    def load(self, base: StoreKey | str, adapter: TypeAdapter[T], default: Callable[[], T]) -> T:
        raw = self.get(base)
        if raw is None:
            return default()
        try:
            return adapter.validate_python(raw)
        except ValidationError as exc:
            raise StoreError(f"invalid stored value for {self.key(base)!r}") from exc

    def save(self, base: StoreKey | str, adapter: TypeAdapter[T], value: T) -> None:
        self.set(base, adapter.dump_python(value, mode="json"))

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    def team_config(self) -> TeamConfig:
        return self.load(StoreKey.TEAM_CONFIG, _TEAM_CONFIG, TeamConfig)

    def save_team_config(self, config: TeamConfig) -> None:
        self.save(StoreKey.TEAM_CONFIG, _TEAM_CONFIG, config)

    def capacity_settings(self) -> CapacitySettings:
        return self.load(StoreKey.CAPACITY_SETTINGS, _CAPACITY_SETTINGS, CapacitySettings)

    def save_capacity_settings(self, settings: CapacitySettings) -> None:
        self.save(StoreKey.CAPACITY_SETTINGS, _CAPACITY_SETTINGS, settings)

    def sprint_capacity(self) -> dict[str, SprintCapacityRecord]:
        return self.load(StoreKey.SPRINT_CAPACITY, _SPRINT_CAPACITY, dict)

    def save_sprint_capacity(self, records: dict[str, SprintCapacityRecord]) -> None:
        self.save(StoreKey.SPRINT_CAPACITY, _SPRINT_CAPACITY, records)

    def absences(self) -> list[Absence]:
        return self.load(StoreKey.ABSENCES, _ABSENCES, list)

    def save_absences(self, absences: list[Absence]) -> None:
        self.save(StoreKey.ABSENCES, _ABSENCES, absences)

    def forecasts(self) -> list[Forecast]:
        return self.load(StoreKey.FORECASTS, _FORECASTS, list)

    def save_forecasts(self, forecasts: list[Forecast]) -> None:
        self.save(StoreKey.FORECASTS, _FORECASTS, forecasts)
