"""
In-memory document store.

Backs the console demo and the test suite. Per-operation latency and
queued failures can be injected to exercise slow or broken networks
without a real backend.
"""

import asyncio
import copy
import logging
from collections import defaultdict
from typing import Any, Optional

from carelink.exceptions import StoreError, StoreErrorKind
from carelink.store.base import (
    ABSENT,
    DocumentSnapshot,
    DocumentStore,
    SnapshotListener,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

OPERATIONS = ("get", "set", "array_union")


class _Subscription:
    def __init__(self, path: str, listener: SnapshotListener) -> None:
        self.path = path
        self.listener = listener
        self.active = True

    def deliver(self, snapshot: Optional[DocumentSnapshot]) -> None:
        if self.active:
            self.listener(snapshot)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store with integer version tokens."""

    def __init__(self, atomic_append: bool = True) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._versions: dict[str, int] = {}
        self._subscriptions: dict[str, list[_Subscription]] = defaultdict(list)
        self._latency: dict[str, float] = {}
        self._failures: dict[str, list[StoreError]] = defaultdict(list)
        self._atomic_append = atomic_append
        self.online = True
        self.calls: list[tuple[str, str]] = []

    @property
    def supports_atomic_append(self) -> bool:
        return self._atomic_append

    # ------------------------------------------------------------------ #
    # Fault injection
    # ------------------------------------------------------------------ #

    def set_latency(self, operation: str, seconds: float) -> None:
        """Delay every future ``operation`` call by ``seconds``."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation {operation!r}")
        self._latency[operation] = seconds

    def fail_next(self, operation: str, error: Optional[StoreError] = None) -> None:
        """Make the next ``operation`` call raise ``error``."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation {operation!r}")
        self._failures[operation].append(
            error or StoreError(StoreErrorKind.NETWORK, f"injected {operation} failure")
        )

    def seed(self, path: str, data: dict[str, Any]) -> None:
        """Place a document directly, without notifying subscribers."""
        self._docs[path] = copy.deepcopy(data)
        self._versions[path] = self._versions.get(path, 0) + 1

    def peek(self, path: str) -> Optional[dict[str, Any]]:
        """Return a copy of the stored data without counting as a call."""
        data = self._docs.get(path)
        return copy.deepcopy(data) if data is not None else None

    def redeliver(self, path: str) -> None:
        """Push the current state to subscribers again."""
        self._notify(path)

    async def _enter(self, operation: str, path: str) -> None:
        self.calls.append((operation, path))
        delay = self._latency.get(operation, 0.0)
        if delay:
            await asyncio.sleep(delay)
        if not self.online:
            raise StoreError(StoreErrorKind.NETWORK, "store unreachable")
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    # ------------------------------------------------------------------ #
    # DocumentStore
    # ------------------------------------------------------------------ #

    def _snapshot(self, path: str) -> Optional[DocumentSnapshot]:
        if path not in self._docs:
            return None
        return DocumentSnapshot(
            path=path,
            data=copy.deepcopy(self._docs[path]),
            version=self._versions[path],
        )

    async def get(self, path: str) -> Optional[DocumentSnapshot]:
        await self._enter("get", path)
        return self._snapshot(path)

    async def set(
        self,
        path: str,
        partial: dict[str, Any],
        merge: bool = True,
        expected_version: Any = None,
    ) -> None:
        await self._enter("set", path)
        if expected_version is not None:
            current = self._versions[path] if path in self._docs else ABSENT
            if current != expected_version:
                raise StoreError(
                    StoreErrorKind.CONFLICT,
                    f"{path} is at version {current}, expected {expected_version}",
                )
        if merge and path in self._docs:
            self._docs[path].update(copy.deepcopy(partial))
        else:
            self._docs[path] = copy.deepcopy(partial)
        self._versions[path] = self._versions.get(path, 0) + 1
        self._notify(path)

    async def array_union(self, path: str, field_name: str, values: list[Any]) -> None:
        if not self._atomic_append:
            return await super().array_union(path, field_name, values)
        await self._enter("array_union", path)
        doc = self._docs.setdefault(path, {})
        existing = doc.setdefault(field_name, [])
        if not isinstance(existing, list):
            raise StoreError(
                StoreErrorKind.MALFORMED_DOCUMENT, f"'{field_name}' in {path} is not a list"
            )
        for value in values:
            if value not in existing:
                existing.append(copy.deepcopy(value))
        self._versions[path] = self._versions.get(path, 0) + 1
        self._notify(path)

    def subscribe(self, path: str, on_change: SnapshotListener) -> Unsubscribe:
        subscription = _Subscription(path, on_change)
        self._subscriptions[path].append(subscription)
        loop = asyncio.get_running_loop()
        loop.call_soon(subscription.deliver, self._snapshot(path))

        def unsubscribe() -> None:
            subscription.active = False
            if subscription in self._subscriptions[path]:
                self._subscriptions[path].remove(subscription)

        return unsubscribe

    def subscriber_count(self, path: str) -> int:
        return len(self._subscriptions.get(path, []))

    def _notify(self, path: str) -> None:
        subscriptions = list(self._subscriptions.get(path, []))
        if not subscriptions:
            return
        loop = asyncio.get_running_loop()
        for subscription in subscriptions:
            loop.call_soon(subscription.deliver, self._snapshot(path))
