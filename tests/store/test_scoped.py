from datetime import date

import pytest

from pmpulse.contracts.config import CapacitySettings
from pmpulse.contracts.exceptions import StoreError
from pmpulse.contracts.store import StoreContext, StoreKey
from pmpulse.contracts.team import Absence, TeamConfig, TeamMember
from pmpulse.store.memory import InMemoryStore
from pmpulse.store.scoped import ScopedStore
from tests.fakes.builders import ts


def test_contexts_are_isolated() -> None:
    backend = InMemoryStore()
    global_store = ScopedStore(backend)
    project_store = global_store.with_context(StoreContext(project_id="42"))

    global_store.set(StoreKey.FORECASTS, ["global"])

    assert project_store.get(StoreKey.FORECASTS) is None

    project_store.set(StoreKey.FORECASTS, ["project"])

    assert backend.list_keys("forecasts") == ["forecasts", "forecasts_42"]
    assert global_store.get(StoreKey.FORECASTS) == ["global"]


def test_pod_context_key() -> None:
    store = ScopedStore(InMemoryStore(), StoreContext(project_id="42", pod_id="blue"))

    assert store.key(StoreKey.TEAM_CONFIG) == "teamConfig_pod_blue"


def test_typed_defaults_when_missing(store: ScopedStore) -> None:
    assert store.team_config() == TeamConfig()
    assert store.capacity_settings() == CapacitySettings()
    assert store.absences() == []
    assert store.forecasts() == []
    assert store.sprint_capacity() == {}


def test_team_config_round_trip_is_json_in_backend(store: ScopedStore) -> None:
    config = TeamConfig(members=[TeamMember(username="ana", role="Developer", default_capacity=32)])

    store.save_team_config(config)

    assert store.backend.get("teamConfig")["members"][0]["username"] == "ana"
    assert store.team_config().member("ana").default_capacity == 32


def test_absence_dates_are_serialised_as_iso_strings(store: ScopedStore) -> None:
    absence = Absence(
        id="a1",
        username="ana",
        start_date=date(2025, 6, 2),
        end_date=date(2025, 6, 6),
        created_at=ts("2025-05-01"),
    )

    store.save_absences([absence])

    assert store.backend.get("absences")[0]["start_date"] == "2025-06-02"
    assert store.absences() == [absence]


def test_invalid_stored_value_raises_store_error(store: ScopedStore) -> None:
    store.set(StoreKey.TEAM_CONFIG, {"members": [{"username": "ana", "role": "Wizard"}]})

    with pytest.raises(StoreError, match="teamConfig"):
        store.team_config()
