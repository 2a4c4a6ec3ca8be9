"""
Firestore-backed document store.

The Firebase Admin SDK is blocking and delivers snapshot callbacks on its
own watch thread. Blocking calls run in ``asyncio.to_thread`` and snapshot
callbacks are handed back to the event loop with ``call_soon_threadsafe``,
so listeners always run on the loop like the in-memory store's do.
"""

import asyncio
import logging
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from carelink.config import StoreConfig
from carelink.exceptions import StoreError, StoreErrorKind
from carelink.store.base import (
    ABSENT,
    DocumentSnapshot,
    DocumentStore,
    SnapshotListener,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

_ERROR_KINDS: tuple[tuple[type, StoreErrorKind], ...] = (
    (google_exceptions.PermissionDenied, StoreErrorKind.PERMISSION_DENIED),
    (google_exceptions.Unauthenticated, StoreErrorKind.PERMISSION_DENIED),
    (google_exceptions.AlreadyExists, StoreErrorKind.CONFLICT),
    (google_exceptions.FailedPrecondition, StoreErrorKind.CONFLICT),
    (google_exceptions.Aborted, StoreErrorKind.CONFLICT),
    (google_exceptions.ServiceUnavailable, StoreErrorKind.NETWORK),
    (google_exceptions.DeadlineExceeded, StoreErrorKind.NETWORK),
    (google_exceptions.RetryError, StoreErrorKind.NETWORK),
)


def _to_store_error(exc: Exception, path: str) -> StoreError:
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            return StoreError(kind, f"{path}: {exc}")
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return StoreError(StoreErrorKind.NETWORK, f"{path}: {exc}")
    return StoreError(StoreErrorKind.UNKNOWN, f"{path}: {exc}")


def _initialize_app(config: StoreConfig) -> "firebase_admin.App":
    """Reuse the default Firebase app, creating it on first use.

    Credentials come from ``credentials_path`` when set, otherwise from
    Application Default Credentials.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    if config.credentials_path:
        logger.info("Loading Firebase credentials from %s", config.credentials_path)
        cred = credentials.Certificate(config.credentials_path)
    else:
        logger.info("Loading Firebase application default credentials")
        cred = credentials.ApplicationDefault()
    return firebase_admin.initialize_app(cred)


class FirestoreDocumentStore(DocumentStore):
    """DocumentStore over a Firestore client. Versions are update times."""

    def __init__(self, config: StoreConfig, client: Any = None) -> None:
        if client is None:
            client = firestore.client(app=_initialize_app(config))
        self._db = client

    @property
    def supports_atomic_append(self) -> bool:
        return True

    async def _run(self, path: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except google_exceptions.GoogleAPIError as exc:
            raise _to_store_error(exc, path) from exc
        except (ConnectionError, TimeoutError) as exc:
            raise _to_store_error(exc, path) from exc

    @staticmethod
    def _convert(path: str, snap: Any) -> Optional[DocumentSnapshot]:
        if snap is None or not snap.exists:
            return None
        return DocumentSnapshot(path=path, data=snap.to_dict() or {}, version=snap.update_time)

    async def get(self, path: str) -> Optional[DocumentSnapshot]:
        snap = await self._run(path, self._db.document(path).get)
        return self._convert(path, snap)

    async def set(
        self,
        path: str,
        partial: dict[str, Any],
        merge: bool = True,
        expected_version: Any = None,
    ) -> None:
        doc_ref = self._db.document(path)
        if expected_version is None:
            await self._run(path, doc_ref.set, partial, merge=merge)
        elif expected_version == ABSENT:
            await self._run(path, doc_ref.create, partial)
        else:
            option = self._db.write_option(last_update_time=expected_version)
            await self._run(path, doc_ref.update, partial, option=option)

    async def array_union(self, path: str, field_name: str, values: list[Any]) -> None:
        doc_ref = self._db.document(path)
        await self._run(
            path, doc_ref.set, {field_name: firestore.ArrayUnion(values)}, merge=True
        )

    def subscribe(self, path: str, on_change: SnapshotListener) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        active = True

        def deliver(snapshot: Optional[DocumentSnapshot]) -> None:
            if active:
                on_change(snapshot)

        def on_snapshot(doc_snapshots, changes, read_time) -> None:
            snap = doc_snapshots[0] if doc_snapshots else None
            loop.call_soon_threadsafe(deliver, self._convert(path, snap))

        watch = self._db.document(path).on_snapshot(on_snapshot)

        def unsubscribe() -> None:
            nonlocal active
            active = False
            watch.unsubscribe()

        return unsubscribe
