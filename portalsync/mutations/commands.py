"""Mutation command objects.

Each queued write is a command that knows how to apply itself to a
RemoteStore and, once applied, how to invert itself. The queue dispatches
`apply()`; the undo registry re-invokes `invert()`.

Payload shapes by kind:
    create: the record's fields, optionally with an "id"
    update: {"id": ..., "fields": {...}, "expected_version": n}
    delete: {"id": ...}
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar

from portalsync.errors import (
    ErrorKind,
    InvalidTransitionError,
    RemoteStoreError,
    VersionConflictError,
)
from portalsync.records.models import VersionedEntity
from portalsync.remote.base import RemoteStore
from portalsync.remote.models import (
    UpdateConflict,
    UpdateFailed,
    UpdateNotFound,
    UpdateResult,
    UpdateSucceeded,
)


class MutationKind(str, Enum):
    """Kind of client-originated write."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# Display names used in undo descriptions
ENTITY_LABELS: dict[str, str] = {
    "students": "siswa",
    "classes": "kelas",
    "attendance": "absensi",
    "academic_records": "nilai",
    "tasks": "tugas",
    "schedules": "jadwal",
    "violations": "pelanggaran",
    "reports": "laporan",
}

_VERBS: dict[MutationKind, str] = {
    MutationKind.CREATE: "Membuat",
    MutationKind.UPDATE: "Memperbarui",
    MutationKind.DELETE: "Menghapus",
}


def describe(kind: MutationKind, entity_type: str, count: int = 1) -> str:
    """Default undo message, e.g. "Menghapus 1 siswa"."""
    label = ENTITY_LABELS.get(entity_type, entity_type)
    return f"{_VERBS[kind]} {count} {label}"


def raise_for_update(result: UpdateResult, table: str, record_id: str) -> UpdateSucceeded:
    """Turn a non-success update outcome into the matching exception."""
    if isinstance(result, UpdateSucceeded):
        return result
    if isinstance(result, UpdateConflict):
        raise VersionConflictError(
            f"{table}/{record_id} is at version {result.current_version}",
            current_version=result.current_version,
        )
    if isinstance(result, UpdateNotFound):
        raise RemoteStoreError(f"{table}/{record_id} not found", ErrorKind.NOT_FOUND, code="NOT_FOUND")
    if isinstance(result, UpdateFailed):
        raise RemoteStoreError(
            result.error.detail or result.error.message,
            result.error.kind,
            status_code=result.error.status_code,
            code=result.error.code,
        )
    raise TypeError(f"unexpected update result: {result!r}")


class MutationCommand(ABC):
    """A write against one entity that can be applied once and then inverted."""

    kind: ClassVar[MutationKind]

    def __init__(self, entity_type: str, payload: dict[str, Any]) -> None:
        self.entity_type = entity_type
        self.payload = payload
        self.applied = False

    @property
    def entity_id(self) -> str | None:
        record_id = self.payload.get("id")
        return str(record_id) if record_id is not None else None

    @abstractmethod
    async def apply(self, remote: RemoteStore, actor_id: str) -> None:
        """Submit the write.

        Raises:
            PortalSyncError: Classified failure; nothing was applied
        """
        pass

    @abstractmethod
    async def invert(self, remote: RemoteStore, actor_id: str) -> None:
        """Undo a successfully applied write."""
        pass

    def _require_applied(self) -> None:
        if not self.applied:
            raise InvalidTransitionError(
                f"{self.kind.value} on {self.entity_type} has not been applied"
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.entity_type!r}, id={self.entity_id!r})"


class CreateCommand(MutationCommand):
    """Insert a record; inverted by deleting it."""

    kind = MutationKind.CREATE

    def __init__(self, entity_type: str, payload: dict[str, Any]) -> None:
        super().__init__(entity_type, payload)
        self.created: VersionedEntity | None = None

    @property
    def entity_id(self) -> str | None:
        if self.created is not None:
            return self.created.id
        return super().entity_id

    async def apply(self, remote: RemoteStore, actor_id: str) -> None:
        self.created = await remote.insert(
            self.entity_type,
            self.payload,
            actor_id=actor_id,
            record_id=super().entity_id,
        )
        self.applied = True

    async def invert(self, remote: RemoteStore, actor_id: str) -> None:
        self._require_applied()
        assert self.created is not None
        await remote.delete(self.entity_type, self.created.id, actor_id=actor_id)


class UpdateCommand(MutationCommand):
    """Version-checked update; inverted by writing the previous values back.

    The pre-image is read before the update. It is trusted only when its
    version equals the expected version, which makes it exactly the row the
    update replaced. Otherwise the store's reported previous values are used,
    and if neither covers every updated field the command cannot be inverted.
    """

    kind = MutationKind.UPDATE

    def __init__(self, entity_type: str, payload: dict[str, Any]) -> None:
        if "id" not in payload or "expected_version" not in payload:
            raise ValueError("update payload needs 'id' and 'expected_version'")
        super().__init__(entity_type, payload)
        self.result: UpdateSucceeded | None = None
        self.previous: dict[str, Any] | None = None

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self.payload.get("fields") or {})

    async def apply(self, remote: RemoteStore, actor_id: str) -> None:
        record_id = str(self.payload["id"])
        expected_version = int(self.payload["expected_version"])
        before = await remote.get(self.entity_type, record_id)
        result = await remote.update_with_version(
            self.entity_type,
            record_id,
            self.fields,
            expected_version,
            actor_id=actor_id,
        )
        self.result = raise_for_update(result, self.entity_type, record_id)
        self.previous = self._pre_image(before, expected_version)
        self.applied = True

    def _pre_image(
        self, before: VersionedEntity | None, expected_version: int
    ) -> dict[str, Any] | None:
        if before is not None and before.version == expected_version:
            return dict(before.data)
        assert self.result is not None
        reported = self.result.previous
        if all(key in reported for key in self.fields):
            return dict(reported)
        return None

    async def invert(self, remote: RemoteStore, actor_id: str) -> None:
        """Restore the pre-update values.

        The inverse is itself version-checked against the version this
        command produced, so it conflicts if someone wrote in between.

        Raises:
            RemoteStoreError: UNKNOWN when the previous values were never known
        """
        self._require_applied()
        assert self.result is not None
        record_id = str(self.payload["id"])
        if self.previous is None:
            raise RemoteStoreError(
                f"previous values of {self.entity_type}/{record_id} are unknown",
                ErrorKind.UNKNOWN,
            )
        restored = {key: self.previous.get(key) for key in self.fields}
        result = await remote.update_with_version(
            self.entity_type,
            record_id,
            restored,
            self.result.new_version,
            actor_id=actor_id,
        )
        raise_for_update(result, self.entity_type, record_id)


class DeleteCommand(MutationCommand):
    """Delete a record; inverted by restoring its last stored state."""

    kind = MutationKind.DELETE

    def __init__(self, entity_type: str, payload: dict[str, Any]) -> None:
        if "id" not in payload:
            raise ValueError("delete payload needs 'id'")
        super().__init__(entity_type, payload)
        self.removed: VersionedEntity | None = None

    async def apply(self, remote: RemoteStore, actor_id: str) -> None:
        self.removed = await remote.delete(
            self.entity_type, str(self.payload["id"]), actor_id=actor_id
        )
        self.applied = True

    async def invert(self, remote: RemoteStore, actor_id: str) -> None:
        self._require_applied()
        assert self.removed is not None
        await remote.restore(self.removed, actor_id=actor_id)


_COMMANDS: dict[MutationKind, type[MutationCommand]] = {
    MutationKind.CREATE: CreateCommand,
    MutationKind.UPDATE: UpdateCommand,
    MutationKind.DELETE: DeleteCommand,
}


def build_command(kind: MutationKind, entity_type: str, payload: dict[str, Any]) -> MutationCommand:
    """Create the command for a mutation kind.

    Raises:
        ValueError: If the payload does not fit the kind
    """
    return _COMMANDS[MutationKind(kind)](entity_type, payload)
