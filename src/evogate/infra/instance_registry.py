"""In-memory instance ownership registry.

Records which tenant created each provider instance so instance-scoped
operations can refuse cross-tenant access. Instances created outside the
gateway have no owner and are open to any authenticated tenant.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class InstanceRecord:
    instance: str
    client_id: str
    created_at: datetime


class InstanceRegistry:
    def __init__(self) -> None:
        self._records: dict[str, InstanceRecord] = {}
        self._lock = threading.Lock()

    def register(self, instance: str, client_id: str) -> InstanceRecord:
        record = InstanceRecord(
            instance=instance, client_id=client_id, created_at=datetime.now(timezone.utc)
        )
        with self._lock:
            self._records[instance] = record
        return record

    def owner_of(self, instance: str) -> str | None:
        record = self._records.get(instance)
        return record.client_id if record else None

    def forget(self, instance: str) -> None:
        with self._lock:
            self._records.pop(instance, None)

    def list_for(self, client_id: str) -> list[InstanceRecord]:
        with self._lock:
            return sorted(
                (r for r in self._records.values() if r.client_id == client_id),
                key=lambda r: r.created_at,
            )
