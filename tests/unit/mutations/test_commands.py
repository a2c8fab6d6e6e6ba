"""Tests for mutation command objects."""

import json
from typing import Any

import httpx
import pytest

from portalsync.concurrency import OptimisticConcurrencyController
from portalsync.errors import ErrorKind, InvalidTransitionError, RemoteStoreError, VersionConflictError
from portalsync.mutations import (
    CreateCommand,
    DeleteCommand,
    MutationKind,
    UpdateCommand,
    build_command,
    describe,
)
from portalsync.remote import HttpRemoteStore

ACTOR = "guru-1"
BASE_URL = "https://portal.example.test"


class TestBuildCommand:
    """Tests for build_command and payload checks."""

    def test_kinds(self) -> None:
        assert isinstance(build_command(MutationKind.CREATE, "tasks", {}), CreateCommand)
        assert isinstance(
            build_command("update", "tasks", {"id": "t", "fields": {}, "expected_version": 1}),
            UpdateCommand,
        )
        assert isinstance(build_command("delete", "tasks", {"id": "t"}), DeleteCommand)

    def test_update_needs_version(self) -> None:
        with pytest.raises(ValueError):
            build_command(MutationKind.UPDATE, "tasks", {"id": "t", "fields": {}})

    def test_delete_needs_id(self) -> None:
        with pytest.raises(ValueError):
            build_command(MutationKind.DELETE, "tasks", {})

    def test_describe(self) -> None:
        assert describe(MutationKind.DELETE, "students") == "Menghapus 1 siswa"
        assert describe(MutationKind.DELETE, "tasks", 3) == "Menghapus 3 tugas"
        assert describe(MutationKind.UPDATE, "unknown_table") == "Memperbarui 1 unknown_table"


class TestApplyAndInvert:
    """Tests for apply() and invert() against the in-process store."""

    @pytest.mark.asyncio
    async def test_create_inverted_by_delete(
        self, controller: OptimisticConcurrencyController
    ) -> None:
        command = CreateCommand("tasks", {"id": "t-1", "title": "PR Matematika"})
        await command.apply(controller, ACTOR)
        assert command.entity_id == "t-1"
        assert await controller.get("tasks", "t-1") is not None

        await command.invert(controller, ACTOR)

        assert await controller.get("tasks", "t-1") is None

    @pytest.mark.asyncio
    async def test_create_without_id_gets_one(
        self, controller: OptimisticConcurrencyController
    ) -> None:
        command = CreateCommand("tasks", {"title": "PR"})
        assert command.entity_id is None
        await command.apply(controller, ACTOR)
        assert command.entity_id is not None

    @pytest.mark.asyncio
    async def test_update_inverted_by_previous_values(
        self, controller: OptimisticConcurrencyController
    ) -> None:
        await controller.insert("tasks", {"title": "PR", "done": False}, actor_id=ACTOR, record_id="t-1")
        command = UpdateCommand(
            "tasks",
            {"id": "t-1", "fields": {"done": True, "note": "selesai"}, "expected_version": 1},
        )
        await command.apply(controller, ACTOR)

        await command.invert(controller, ACTOR)

        stored = await controller.get("tasks", "t-1")
        assert stored is not None
        assert stored.version == 3
        assert stored.data["done"] is False
        assert stored.data["note"] is None

    @pytest.mark.asyncio
    async def test_update_conflict_raises(
        self, controller: OptimisticConcurrencyController
    ) -> None:
        await controller.insert("tasks", {"title": "PR"}, actor_id=ACTOR, record_id="t-1")
        await controller.update_with_version("tasks", "t-1", {"title": "PR 2"}, 1, actor_id=ACTOR)
        command = UpdateCommand(
            "tasks", {"id": "t-1", "fields": {"title": "PR 3"}, "expected_version": 1}
        )

        with pytest.raises(VersionConflictError) as exc_info:
            await command.apply(controller, ACTOR)

        assert exc_info.value.current_version == 2
        assert not command.applied

    @pytest.mark.asyncio
    async def test_update_missing_raises_not_found(
        self, controller: OptimisticConcurrencyController
    ) -> None:
        command = UpdateCommand("tasks", {"id": "x", "fields": {}, "expected_version": 1})
        with pytest.raises(RemoteStoreError) as exc_info:
            await command.apply(controller, ACTOR)
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_update_invert_conflicts_after_other_write(
        self, controller: OptimisticConcurrencyController
    ) -> None:
        """The inverse is version-checked too."""
        await controller.insert("tasks", {"title": "PR"}, actor_id=ACTOR, record_id="t-1")
        command = UpdateCommand(
            "tasks", {"id": "t-1", "fields": {"title": "PR 2"}, "expected_version": 1}
        )
        await command.apply(controller, ACTOR)
        await controller.update_with_version("tasks", "t-1", {"title": "PR 3"}, 2, actor_id="guru-2")

        with pytest.raises(VersionConflictError):
            await command.invert(controller, ACTOR)

    @pytest.mark.asyncio
    async def test_delete_inverted_by_restore(
        self, controller: OptimisticConcurrencyController
    ) -> None:
        await controller.insert("students", {"name": "Budi"}, actor_id=ACTOR, record_id="s-1")
        command = DeleteCommand("students", {"id": "s-1"})
        await command.apply(controller, ACTOR)
        assert await controller.get("students", "s-1") is None

        await command.invert(controller, ACTOR)

        restored = await controller.get("students", "s-1")
        assert restored is not None
        assert restored.data == {"name": "Budi"}
        assert restored.version == 2

    @pytest.mark.asyncio
    async def test_invert_before_apply_rejected(
        self, controller: OptimisticConcurrencyController
    ) -> None:
        with pytest.raises(InvalidTransitionError):
            await DeleteCommand("students", {"id": "s-1"}).invert(controller, ACTOR)


class GradeTable:
    """Mock transport serving one row the way the hosted RPC does.

    update_with_version answers only {success, new_version}, never the
    previous values. `write_after_read` lands another actor's write right
    after the next GET.
    """

    def __init__(self, row: dict[str, Any]) -> None:
        self.row = dict(row)
        self.updates: list[dict[str, Any]] = []
        self.write_after_read: dict[str, Any] | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            response = httpx.Response(200, json=[dict(self.row)])
            if self.write_after_read is not None:
                self._write(self.write_after_read)
                self.write_after_read = None
            return response
        payload = json.loads(request.content)
        self.updates.append(payload)
        if payload["p_expected_version"] != self.row["version"]:
            return httpx.Response(
                200,
                json={"success": False, "code": "CONFLICT", "current_version": self.row["version"]},
            )
        self._write(payload["p_fields"])
        return httpx.Response(200, json={"success": True, "new_version": self.row["version"]})

    def _write(self, fields: dict[str, Any]) -> None:
        self.row.update(fields)
        self.row["version"] += 1


class TestUpdateOverHttp:
    """Tests for inverting updates when the store does not report previous values."""

    @pytest.mark.asyncio
    async def test_invert_restores_values_read_before_update(self) -> None:
        table = GradeTable({"id": "n-1", "score": 80, "notes": "awal", "version": 3})
        command = UpdateCommand(
            "academic_records",
            {"id": "n-1", "fields": {"score": 90, "notes": "revisi"}, "expected_version": 3},
        )
        async with HttpRemoteStore(BASE_URL, transport=httpx.MockTransport(table)) as remote:
            await command.apply(remote, ACTOR)
            assert table.row["score"] == 90

            await command.invert(remote, ACTOR)

        assert table.updates[-1]["p_fields"] == {"score": 80, "notes": "awal"}
        assert table.updates[-1]["p_expected_version"] == 4
        assert table.row == {"id": "n-1", "score": 80, "notes": "awal", "version": 5}

    @pytest.mark.asyncio
    async def test_invert_refused_when_previous_values_unknown(self) -> None:
        """A pre-image read at another version is not trusted; the inverse is refused."""
        table = GradeTable({"id": "n-1", "score": 70, "version": 2})
        table.write_after_read = {"score": 80}
        command = UpdateCommand(
            "academic_records", {"id": "n-1", "fields": {"score": 90}, "expected_version": 3}
        )
        async with HttpRemoteStore(BASE_URL, transport=httpx.MockTransport(table)) as remote:
            await command.apply(remote, ACTOR)

            with pytest.raises(RemoteStoreError) as exc_info:
                await command.invert(remote, ACTOR)

        assert exc_info.value.kind is ErrorKind.UNKNOWN
        assert len(table.updates) == 1
        assert table.row["score"] == 90
