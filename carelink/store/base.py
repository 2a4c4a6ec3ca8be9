"""
Remote document store interface.

Documents are addressed by slash-separated path (``chats/<user_id>``).
All operations are coroutines; every call is a suspension point.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

# expected_version value meaning "the document must not exist yet"
ABSENT = "absent"


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time copy of a stored document."""

    path: str
    data: dict[str, Any] = field(default_factory=dict)
    version: Any = None


SnapshotListener = Callable[[Optional[DocumentSnapshot]], None]
Unsubscribe = Callable[[], None]


class DocumentStore(ABC):
    """Key-value document service supporting get, merge-set, and subscribe."""

    @property
    def supports_atomic_append(self) -> bool:
        return False

    @abstractmethod
    async def get(self, path: str) -> Optional[DocumentSnapshot]:
        """Return the document, or None if it does not exist.

        Raises:
            StoreError: On transport, permission, or decoding failure.
        """

    @abstractmethod
    async def set(
        self,
        path: str,
        partial: dict[str, Any],
        merge: bool = True,
        expected_version: Any = None,
    ) -> None:
        """Write ``partial`` into the document.

        With ``merge`` the top-level fields are combined into the existing
        document; otherwise the document is replaced. If
        ``expected_version`` is given the write only applies when the
        stored version still matches (``ABSENT`` = must not exist).

        Raises:
            StoreError: CONFLICT on a version mismatch, other kinds on failure.
        """

    async def array_union(self, path: str, field_name: str, values: list[Any]) -> None:
        """Atomically append ``values`` not already present in an array field."""
        raise NotImplementedError(f"{type(self).__name__} has no atomic append")

    @abstractmethod
    def subscribe(self, path: str, on_change: SnapshotListener) -> Unsubscribe:
        """Register ``on_change`` for the document.

        The listener receives the current state once and then every later
        change, always from the event loop and never re-entrantly from
        inside a write. Returns a callable that detaches the listener.
        """
