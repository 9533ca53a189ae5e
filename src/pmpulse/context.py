"""Explicit state shared by analytics operations."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from pmpulse.analytics.cycle_time import LabelEventCache
from pmpulse.analytics.dates import utc_now
from pmpulse.contracts.config import PmPulseConfig
from pmpulse.contracts.store import KeyValueStore, StoreContext
from pmpulse.store import InMemoryStore, JsonFileStore, ScopedStore


@dataclass
class AnalyticsContext:
    """Store, label-event cache and clock handed to each operation."""

    store: ScopedStore = field(default_factory=lambda: ScopedStore(InMemoryStore()))
    label_cache: LabelEventCache = field(default_factory=LabelEventCache)
    clock: Callable[[], datetime] = utc_now

    def now(self) -> datetime:
        return self.clock()

    @classmethod
    def from_config(cls, config: PmPulseConfig, *, backend: KeyValueStore | None = None) -> AnalyticsContext:
        store = backend if backend is not None else JsonFileStore(config.store_path)
        return cls(
            store=ScopedStore(store, StoreContext.parse(config.active_context)),
            label_cache=LabelEventCache(config.label_event_ttl_seconds),
        )
