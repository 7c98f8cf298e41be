"""Tests for placement planning, conflict resolution and file operations."""
import threading
import pytest
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from photo_sorter.core.config import DuplicateStrategy
from photo_sorter.core.models import DateSource, PlacementAction, ResolvedDate
from photo_sorter.services.conflicts import ConflictResolver, DestinationRegistry, unique_path
from photo_sorter.services.file_ops import FileManager, plan_destination

from .fixtures import make_file


class TestPlanDestination:
    """Tests for the pure placement planner."""

    def test_default_layout(self):
        date = ResolvedDate(datetime(2024, 12, 25, 10, 0), DateSource.EXIF)
        planned = plan_destination(Path("/src/a/IMG_1.jpg"), date, Path("/target"), "YYYY/MM/DD")
        assert planned == Path("/target/2024/12/25/IMG_1.jpg")

    def test_bare_datetime(self):
        planned = plan_destination(Path("x.png"), datetime(2024, 1, 5), Path("/t"), "YYYY-MM")
        assert planned == Path("/t/2024-01/x.png")

    def test_idempotent(self):
        """Test planning twice with the same input gives the same path."""
        args = (Path("/s/x.jpg"), datetime(2023, 7, 1), Path("/t"), "YYYY/MMM")
        assert plan_destination(*args) == plan_destination(*args) == Path("/t/2023/Jul/x.jpg")


class TestUniquePath:
    """Tests for the rename counter."""

    def test_first_free(self):
        taken = {Path("/t/a_1.jpg"), Path("/t/a_2.jpg")}
        assert unique_path(Path("/t/a.jpg"), taken.__contains__) == Path("/t/a_3.jpg")

    def test_no_suffix(self):
        assert unique_path(Path("/t/README"), lambda p: False) == Path("/t/README_1")


class TestConflictResolver:
    """Tests for ConflictResolver."""

    @pytest.fixture
    def occupied(self, tmp_path: Path) -> Path:
        return make_file(tmp_path / "2024" / "a.jpg", b"existing")

    def resolver(self, strategy: DuplicateStrategy, move: bool = True) -> ConflictResolver:
        return ConflictResolver(strategy=strategy, move_files=move, registry=DestinationRegistry())

    def test_free_destination(self, tmp_path: Path):
        planned = tmp_path / "2024" / "new.jpg"
        decision = self.resolver(DuplicateStrategy.RENAME).decide(tmp_path / "src.jpg", planned)

        assert decision.destination == planned
        assert decision.action == PlacementAction.MOVE
        assert not decision.duplicate

    def test_copy_action(self, tmp_path: Path):
        decision = self.resolver(DuplicateStrategy.RENAME, move=False).decide(tmp_path / "s.jpg", tmp_path / "d.jpg")
        assert decision.action == PlacementAction.COPY

    def test_skip(self, tmp_path: Path, occupied: Path):
        decision = self.resolver(DuplicateStrategy.SKIP).decide(tmp_path / "src.jpg", occupied)

        assert decision.action == PlacementAction.SKIP
        assert decision.duplicate
        assert decision.destination == occupied

    def test_overwrite(self, tmp_path: Path, occupied: Path):
        decision = self.resolver(DuplicateStrategy.OVERWRITE).decide(tmp_path / "src.jpg", occupied)

        assert decision.action == PlacementAction.MOVE
        assert decision.duplicate
        assert decision.overwrite
        assert decision.destination == occupied

    def test_rename_sequence(self, tmp_path: Path, occupied: Path):
        """Test renames count up _1, _2 past existing files."""
        make_file(occupied.with_name("a_1.jpg"))
        resolver = self.resolver(DuplicateStrategy.RENAME)

        first = resolver.decide(tmp_path / "x" / "a.jpg", occupied)
        second = resolver.decide(tmp_path / "y" / "a.jpg", occupied)

        assert first.action == PlacementAction.RENAME
        assert first.destination == occupied.with_name("a_2.jpg")
        assert second.destination == occupied.with_name("a_3.jpg")
        assert first.planned == occupied

    def test_claims_within_run(self, tmp_path: Path):
        """Test a destination handed out earlier in the run counts as taken."""
        planned = tmp_path / "2024" / "a.jpg"
        resolver = self.resolver(DuplicateStrategy.RENAME)

        first = resolver.decide(tmp_path / "x" / "a.jpg", planned)
        second = resolver.decide(tmp_path / "y" / "a.jpg", planned)

        assert first.destination == planned
        assert not first.duplicate
        assert second.duplicate
        assert second.destination == tmp_path / "2024" / "a_1.jpg"

    def test_own_location_not_duplicate(self, occupied: Path):
        decision = self.resolver(DuplicateStrategy.SKIP).decide(occupied, occupied)
        assert not decision.duplicate
        assert decision.in_place

    def test_release(self, tmp_path: Path):
        registry = DestinationRegistry()
        resolver = ConflictResolver(DuplicateStrategy.RENAME, True, registry)
        planned = tmp_path / "a.jpg"

        resolver.decide(tmp_path / "s1.jpg", planned)
        assert registry.is_claimed(planned)
        registry.release(planned)
        assert not registry.is_claimed(planned)

    def test_concurrent_claims_unique(self, tmp_path: Path):
        """Test many threads targeting one path each get a distinct destination."""
        resolver = self.resolver(DuplicateStrategy.RENAME)
        planned = tmp_path / "2024" / "same.jpg"
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(16)

        def work(i: int):
            barrier.wait()
            decision = resolver.decide(tmp_path / f"src{i}" / "same.jpg", planned)
            with lock:
                results.append(decision.destination)

        threads = [threading.Thread(target=work, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 16
        assert len(set(results)) == 16
        assert planned in results


class TestFileManager:
    """Tests for FileManager service."""

    def test_move(self, tmp_path: Path):
        source = make_file(tmp_path / "src" / "a.jpg", b"abc")
        target = tmp_path / "out" / "a.jpg"
        manager = FileManager()

        assert manager.ensure_directory(target.parent) is True
        assert manager.ensure_directory(target.parent) is False
        manager.move_file(source, target)

        assert not source.exists()
        assert target.read_bytes() == b"abc"

    def test_copy_preserves_mtime(self, tmp_path: Path):
        source = make_file(tmp_path / "a.jpg", b"abc", mtime=datetime(2020, 5, 5, 5, 5, 5))
        target = tmp_path / "b.jpg"

        FileManager().copy_file(source, target)

        assert source.exists()
        assert int(target.stat().st_mtime) == int(datetime(2020, 5, 5, 5, 5, 5).timestamp())

    def test_backup_before_move(self, tmp_path: Path):
        source = make_file(tmp_path / "a.jpg", b"abc")
        target = tmp_path / "out.jpg"

        FileManager(create_backups=True).move_file(source, target)

        assert (tmp_path / "a.jpg.backup").read_bytes() == b"abc"
        assert target.exists()

    def test_backup_failure_does_not_block_move(self, tmp_path: Path):
        source = make_file(tmp_path / "a.jpg", b"abc")
        target = tmp_path / "out.jpg"
        manager = FileManager(create_backups=True)

        with patch.object(manager, "create_backup", side_effect=OSError("disk full")):
            manager.move_file(source, target)

        assert target.exists()

    def test_transfer_dispatch(self, tmp_path: Path):
        manager = FileManager()
        source = make_file(tmp_path / "a.jpg")
        manager.transfer(source, tmp_path / "b.jpg", move=False)
        assert source.exists()
        manager.transfer(source, tmp_path / "c.jpg", move=True)
        assert not source.exists()

    def test_dry_run_touches_nothing(self, tmp_path: Path):
        """Test dry-run mode creates, copies and moves nothing."""
        source = make_file(tmp_path / "a.jpg")
        target_dir = tmp_path / "out" / "2024"
        manager = FileManager(dry_run=True, create_backups=True)

        assert manager.ensure_directory(target_dir) is False
        manager.copy_file(source, target_dir / "a.jpg")
        manager.move_file(source, target_dir / "a.jpg")

        assert source.exists()
        assert not (tmp_path / "out").exists()
        assert not (tmp_path / "a.jpg.backup").exists()

    def test_ensure_directory_over_file(self, tmp_path: Path):
        blocker = make_file(tmp_path / "blocker")
        with pytest.raises(OSError):
            FileManager().ensure_directory(blocker)
