"""Tests for FileStatePersistenceRepository."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from applifecycle.memento import AppStateMemento
from applifecycle.repository import (
    FileStatePersistenceRepository,
    MementoCorruptedError,
    MementoValidationError,
    RepositoryInitializationError,
    RepositoryNotInitializedError,
)
from applifecycle.repository.file_repo import (
    INDEX_FILE_NAME,
    MEMENTO_DIR_NAME,
    STATISTICS_FILE_NAME,
)


@pytest.fixture
async def repository(tmp_path: Path) -> FileStatePersistenceRepository:
    """Initialized file repository in a temporary directory."""
    repo = FileStatePersistenceRepository(tmp_path)
    await repo.initialize()
    return repo


class TestInitialization:
    """Tests for initialize/dispose."""

    async def test_creates_directory(self, tmp_path: Path) -> None:
        repo = FileStatePersistenceRepository(tmp_path / "nested")

        await repo.initialize()

        assert (tmp_path / "nested" / MEMENTO_DIR_NAME).is_dir()
        assert repo.is_initialized

    async def test_initialize_is_idempotent(self, repository: FileStatePersistenceRepository) -> None:
        await repository.initialize()
        assert repository.is_initialized

    async def test_initialization_failure(self, tmp_path: Path) -> None:
        """Test that an unusable directory raises and leaves the repository uninitialized."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        repo = FileStatePersistenceRepository(blocker)

        with pytest.raises(RepositoryInitializationError):
            await repo.initialize()

        assert not repo.is_initialized
        with pytest.raises(RepositoryNotInitializedError):
            await repo.get_all_mementos()

    async def test_operations_before_initialize(self, tmp_path: Path, make_memento) -> None:
        """Test that every operation fails without touching storage."""
        repo = FileStatePersistenceRepository(tmp_path)

        with pytest.raises(RepositoryNotInitializedError):
            await repo.save_memento(make_memento("m1"))
        with pytest.raises(RepositoryNotInitializedError):
            await repo.get_latest_memento()
        with pytest.raises(RepositoryNotInitializedError):
            await repo.get_memento_by_id("m1")
        with pytest.raises(RepositoryNotInitializedError):
            await repo.delete_memento("m1")
        with pytest.raises(RepositoryNotInitializedError):
            await repo.clear_all_mementos()
        with pytest.raises(RepositoryNotInitializedError):
            await repo.get_statistics()

        assert not (tmp_path / MEMENTO_DIR_NAME).exists()

    async def test_operations_after_dispose(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        await repository.dispose()

        with pytest.raises(RepositoryNotInitializedError):
            await repository.save_memento(make_memento("m1"))


class TestSaveAndQuery:
    """Tests for save/get operations."""

    async def test_latest_and_ordering(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        """Test saving s1 then s2 returns s2 as latest and [s1, s2] in order."""
        s1 = make_memento("s1", 0, user_session={"uid": "u1"})
        s2 = make_memento("s2", 10, user_session={"uid": "u2"})

        await repository.save_memento(s1)
        await repository.save_memento(s2)

        latest = await repository.get_latest_memento()
        assert latest is not None
        assert latest.id == "s2"
        assert [m.id for m in await repository.get_all_mementos()] == ["s1", "s2"]

    async def test_latest_ignores_insertion_order(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        for memento_id, offset in (("t2", 20), ("t3", 30), ("t1", 10)):
            await repository.save_memento(make_memento(memento_id, offset))

        latest = await repository.get_latest_memento()

        assert latest is not None
        assert latest.id == "t3"

    async def test_empty_store(self, repository: FileStatePersistenceRepository) -> None:
        assert await repository.get_latest_memento() is None
        assert await repository.get_all_mementos() == []

    async def test_missing_id_returns_none(self, repository: FileStatePersistenceRepository) -> None:
        assert await repository.get_memento_by_id("missing") is None

    async def test_save_overwrites_same_id(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        await repository.save_memento(make_memento("m1", user_session={"uid": "old"}))
        await repository.save_memento(make_memento("m1", user_session={"uid": "new"}))

        mementos = await repository.get_all_mementos()

        assert len(mementos) == 1
        assert mementos[0].user_session == {"uid": "new"}

    async def test_persists_across_instances(self, tmp_path: Path, make_memento) -> None:
        first = FileStatePersistenceRepository(tmp_path)
        await first.initialize()
        await first.save_memento(make_memento("m1", user_session={"uid": "u1"}))
        await first.dispose()

        second = FileStatePersistenceRepository(tmp_path)
        await second.initialize()

        memento = await second.get_memento_by_id("m1")
        assert memento is not None
        assert memento.user_session == {"uid": "u1"}

    async def test_large_payload_round_trip(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        """Test that a compressed record reads back unchanged."""
        payload = "p" * 2000
        await repository.save_memento(make_memento("big", pattern_states={"blob": payload}))

        raw = json.loads((repository.directory / "big.json").read_bytes())
        assert raw["_compressed"] is True

        fresh = FileStatePersistenceRepository(repository.base_dir)
        await fresh.initialize()
        memento = await fresh.get_memento_by_id("big")
        assert memento is not None
        assert memento.pattern_states["blob"] == payload

    async def test_invalid_id_rejected(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        with pytest.raises(MementoValidationError):
            await repository.save_memento(make_memento("../escape"))


class TestMetadataFiles:
    """Tests for the index and statistics files."""

    async def test_index_lists_sorted_ids(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        await repository.save_memento(make_memento("b", 1))
        await repository.save_memento(make_memento("a", 2))

        index = json.loads((repository.directory / INDEX_FILE_NAME).read_text())

        assert index == ["a", "b"]

    async def test_statistics_file(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        await repository.save_memento(make_memento("a"))

        stats = json.loads((repository.directory / STATISTICS_FILE_NAME).read_text())

        assert stats["total_mementos"] == 1
        assert stats["total_size_bytes"] > 0

    async def test_metadata_files_not_read_as_mementos(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        await repository.save_memento(make_memento("a"))

        assert [m.id for m in await repository.get_all_mementos()] == ["a"]


class TestCorruption:
    """Tests for unreadable records."""

    async def test_bulk_read_skips_corrupt_files(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        await repository.save_memento(make_memento("good"))
        (repository.directory / "bad.json").write_text("{not json")

        with capture_logs() as logs:
            mementos = await repository.get_all_mementos()

        assert [m.id for m in mementos] == ["good"]
        assert any(log["event"] == "memento_file_skipped" for log in logs)

    async def test_single_read_raises_on_corrupt_file(
        self, repository: FileStatePersistenceRepository
    ) -> None:
        (repository.directory / "bad.json").write_text("{not json")

        with pytest.raises(MementoCorruptedError):
            await repository.get_memento_by_id("bad")


class TestDelete:
    """Tests for delete/clear."""

    async def test_delete(self, repository: FileStatePersistenceRepository, make_memento) -> None:
        await repository.save_memento(make_memento("m1"))

        assert await repository.delete_memento("m1") is True
        assert await repository.delete_memento("m1") is False
        assert await repository.get_memento_by_id("m1") is None

    async def test_clear(self, repository: FileStatePersistenceRepository, make_memento) -> None:
        await repository.save_memento(make_memento("m1"))
        await repository.save_memento(make_memento("m2", 1))

        await repository.clear_all_mementos()

        assert await repository.get_all_mementos() == []
        stats = await repository.get_statistics()
        assert stats.total_mementos == 0


class TestStatistics:
    """Tests for get_statistics."""

    async def test_statistics(
        self, repository: FileStatePersistenceRepository, make_memento
    ) -> None:
        first = make_memento("m1", -60)
        second = make_memento("m2", 0, originator_id="session")
        await repository.save_memento(first)
        await repository.save_memento(second)

        stats = await repository.get_statistics()

        assert stats.total_mementos == 2
        assert stats.oldest_memento == first.timestamp
        assert stats.newest_memento == second.timestamp
        assert stats.originator_counts == {"app": 1, "session": 1}
        assert stats.total_size_bytes == sum(
            (repository.directory / f"{m}.json").stat().st_size for m in ("m1", "m2")
        )
