"""Tests for directory discovery."""
import os
import pytest
from pathlib import Path

from photo_sorter.core.config import OrganizerConfig
from photo_sorter.core.models import MediaKind
from photo_sorter.core.statistics import Statistics
from photo_sorter.services.scanner import DirectoryScanner, find_thumbnail, is_date_folder

from .fixtures import make_file


class TestIsDateFolder:
    """Tests for the already-organized heuristic."""

    @pytest.mark.parametrize("name", ["2024", "2024-12", "2024_01", "2024-12-25", "2024_12_31"])
    def test_date_names(self, name):
        assert is_date_folder(name)

    @pytest.mark.parametrize("name", ["vacation", "12", "2024-13", "2024-12-32", "20241225", "Photos 2024"])
    def test_other_names(self, name):
        assert not is_date_folder(name)


class TestFindThumbnail:
    """Tests for sibling thumbnail lookup."""

    def test_lower_case(self, tmp_path: Path):
        video = make_file(tmp_path / "MOV1.mpg")
        thumb = make_file(tmp_path / "MOV1.thm")
        assert find_thumbnail(video, ".thm") == thumb

    def test_upper_case(self, tmp_path: Path):
        video = make_file(tmp_path / "MOV1.MPG")
        thumb = make_file(tmp_path / "MOV1.THM")
        assert find_thumbnail(video, ".thm") == thumb

    def test_missing(self, tmp_path: Path):
        video = make_file(tmp_path / "MOV1.mpg")
        assert find_thumbnail(video, ".thm") is None


class TestDirectoryScanner:
    """Tests for DirectoryScanner service."""

    @pytest.fixture
    def scanner(self):
        return DirectoryScanner(
            image_extensions=[".jpg", ".png"],
            video_extensions=[".mp4", ".mpg"],
            thumbnail_extensions={".mpg": ".thm"},
        )

    @pytest.fixture
    def sample_tree(self, tmp_path: Path) -> Path:
        """Create a sample directory tree with media files."""
        root = tmp_path / "photos"
        make_file(root / "photo1.jpg")
        make_file(root / "photo2.PNG")
        make_file(root / "video.mp4")
        make_file(root / "document.txt")
        make_file(root / "vacation" / "beach.jpg")
        make_file(root / "vacation" / "clip.mpg")
        make_file(root / "vacation" / "clip.thm")
        make_file(root / "2023" / "01" / "old.jpg")
        make_file(root / "2023-05" / "older.jpg")
        return root

    def test_scan_basic(self, scanner, sample_tree):
        """Test media files are found and other files ignored."""
        names = sorted(item.name for item in scanner.scan(sample_tree))
        assert names == ["beach.jpg", "clip.mpg", "photo1.jpg", "photo2.PNG", "video.mp4"]

    def test_thumbnail_attached_not_candidate(self, scanner, sample_tree):
        """Test thumbnails ride along with their video."""
        items = {item.name: item for item in scanner.scan(sample_tree)}

        clip = items["clip.mpg"]
        assert clip.kind == MediaKind.VIDEO
        assert clip.thumbnail_path == (sample_tree / "vacation" / "clip.thm").absolute()
        assert "clip.thm" not in items

    def test_candidate_fields(self, scanner, sample_tree):
        items = {item.name: item for item in scanner.scan(sample_tree)}
        photo = items["photo2.PNG"]
        assert photo.extension == ".png"
        assert photo.kind == MediaKind.IMAGE
        assert photo.size == len(b"data")
        assert photo.path.is_absolute()

    def test_skips_organized_folders(self, scanner, sample_tree):
        names = {item.name for item in scanner.scan(sample_tree)}
        assert "old.jpg" not in names
        assert "older.jpg" not in names

    def test_include_organized_folders(self, sample_tree):
        scanner = DirectoryScanner(image_extensions=[".jpg"], skip_organized=False)
        names = {item.name for item in scanner.scan(sample_tree)}
        assert {"old.jpg", "older.jpg"} <= names

    def test_root_never_pruned(self, scanner, tmp_path: Path):
        """Test a date-named root is still scanned."""
        root = tmp_path / "2024"
        make_file(root / "a.jpg")
        assert [item.name for item in scanner.scan(root)] == ["a.jpg"]

    def test_max_files(self, sample_tree):
        scanner = DirectoryScanner(image_extensions=[".jpg", ".png"], max_files=2)
        assert len(list(scanner.scan(sample_tree))) == 2

    def test_statistics(self, scanner, sample_tree):
        stats = Statistics()
        list(scanner.scan(sample_tree, stats))

        assert stats.total_files_found == 5
        assert stats.video_files_found == 2
        assert stats.thumbnails_found == 1
        assert stats.file_type_stats == {"JPG": 2, "PNG": 1, "MP4": 1, "MPG": 1}
        # photos, vacation
        assert stats.directories_scanned == 2

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlinked_file_included(self, scanner, tmp_path: Path):
        root = tmp_path / "photos"
        target = make_file(tmp_path / "elsewhere" / "real.jpg")
        make_file(root / "a.jpg")
        (root / "link.jpg").symlink_to(target)

        names = [item.name for item in scanner.scan(root)]
        assert names == ["a.jpg", "link.jpg"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_broken_symlink_skipped(self, scanner, tmp_path: Path):
        root = tmp_path / "photos"
        make_file(root / "a.jpg")
        (root / "broken.jpg").symlink_to(tmp_path / "gone.jpg")

        names = [item.name for item in scanner.scan(root)]
        assert names == ["a.jpg"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlinked_directory_not_followed(self, scanner, tmp_path: Path):
        root = tmp_path / "photos"
        make_file(tmp_path / "elsewhere" / "real.jpg")
        make_file(root / "a.jpg")
        (root / "linked").symlink_to(tmp_path / "elsewhere", target_is_directory=True)

        names = [item.name for item in scanner.scan(root)]
        assert names == ["a.jpg"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlink_loop_visited_once(self, tmp_path: Path):
        """Test following links does not walk a loop back into the tree forever."""
        root = tmp_path / "photos"
        make_file(root / "a.jpg")
        make_file(root / "sub" / "b.jpg")
        (root / "sub" / "loop").symlink_to(root, target_is_directory=True)
        scanner = DirectoryScanner(image_extensions=[".jpg"], follow_symlinks=True)
        stats = Statistics()

        names = [item.name for item in scanner.scan(root, stats)]

        assert names == ["a.jpg", "b.jpg"]
        assert stats.directories_scanned == 2

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_followed_symlinked_directory(self, tmp_path: Path):
        root = tmp_path / "photos"
        make_file(tmp_path / "elsewhere" / "real.jpg")
        root.mkdir()
        (root / "linked").symlink_to(tmp_path / "elsewhere", target_is_directory=True)
        scanner = DirectoryScanner(image_extensions=[".jpg"], follow_symlinks=True)

        assert [item.name for item in scanner.scan(root)] == ["real.jpg"]

    def test_unreadable_root_is_skipped(self, scanner, tmp_path: Path):
        """Test an unreadable directory is logged and skipped, not raised."""
        assert list(scanner.scan(tmp_path / "missing")) == []

    def test_from_config(self, tmp_path: Path):
        config = OrganizerConfig(
            source_directory=tmp_path,
            supported_extensions=[".jpg"],
            security={"max_files_per_run": 7},
        )
        scanner = DirectoryScanner.from_config(config)
        assert scanner.classify(Path("a.JPG")) == MediaKind.IMAGE
        assert scanner.classify(Path("a.mov")) == MediaKind.VIDEO
        assert scanner.classify(Path("a.thm")) is None
        assert scanner.classify(Path("a.png")) is None
