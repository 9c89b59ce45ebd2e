"""Tests for photo discovery."""

from pathlib import Path

import pytest
from PIL import Image

from face_label_export.export.scanner import PhotoScanner, scan_photos


@pytest.fixture
def image_tree(tmp_path):
    """Real images, a broken image and a text file, one level nested."""
    root = tmp_path / "album"
    nested = root / "2023"
    nested.mkdir(parents=True)
    Image.new("RGB", (32, 24), color="red").save(root / "beach.jpg")
    Image.new("RGB", (16, 16), color="blue").save(root / "hills.png")
    Image.new("RGB", (8, 8)).save(nested / "party.jpg")
    (root / "broken.jpg").write_bytes(b"not really a jpeg")
    (root / "notes.txt").write_text("shopping list", encoding="utf-8")
    return root


class TestPhotoScanner:
    """Test PhotoScanner class."""

    def test_recursive_scan(self, image_tree):
        photos = scan_photos(str(image_tree))
        assert [p.name for p in photos] == ["party.jpg", "beach.jpg", "hills.png"]
        assert all(p.is_absolute() for p in photos)

    def test_non_recursive_scan(self, image_tree):
        photos = scan_photos(str(image_tree), recursive=False)
        assert sorted(p.name for p in photos) == ["beach.jpg", "hills.png"]

    def test_stats(self, image_tree):
        scanner = PhotoScanner()
        scanner.scan_directory(str(image_tree))
        stats = scanner.get_stats()
        assert stats["scanned"] == 3
        assert stats["skipped"] == 1

    def test_not_a_directory(self, image_tree):
        with pytest.raises(ValueError):
            PhotoScanner().scan_directory(str(image_tree / "beach.jpg"))

    def test_collect_files_and_directories(self, image_tree, tmp_path):
        loose = tmp_path / "loose.jpg"
        Image.new("RGB", (4, 4)).save(loose)
        scanner = PhotoScanner(recursive=False)
        photos = scanner.collect([str(loose), str(image_tree), str(image_tree / "notes.txt")])

        assert photos[0] == loose.resolve()
        assert sorted(p.name for p in photos[1:]) == ["beach.jpg", "hills.png"]
        assert scanner.get_stats()["skipped"] == 2

    def test_collect_returns_absolute_paths(self, image_tree, monkeypatch):
        monkeypatch.chdir(image_tree)
        photos = PhotoScanner().collect(["beach.jpg"])
        assert photos == [Path(image_tree / "beach.jpg").resolve()]
