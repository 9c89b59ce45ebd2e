"""Photo discovery for export batches."""

import logging
from pathlib import Path
from typing import Iterable, Iterator, List

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Formats that carry XMP face regions and that ImageMagick can write back
SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".webp"}


class PhotoScanner:
    """Collects image files from files and directories."""

    def __init__(self, recursive: bool = True):
        self.recursive = recursive
        self._stats = {"scanned": 0, "skipped": 0, "errors": 0}

    def scan_directory(self, directory: str) -> List[Path]:
        """Scan a directory and return the photos found in it."""
        directory_path = Path(directory).resolve()
        if not directory_path.is_dir():
            raise ValueError(f"Not a directory: {directory}")

        photos = sorted(self._scan_directory_iter(directory_path))
        logger.info(
            f"Scan completed: {self._stats['scanned']} scanned, "
            f"{self._stats['skipped']} skipped, {self._stats['errors']} errors"
        )
        return photos

    def collect(self, paths: Iterable[str]) -> List[Path]:
        """Expand a mix of photo files and directories into photo files."""
        photos: List[Path] = []
        for path in paths:
            path = Path(path)
            if path.is_dir():
                photos.extend(self.scan_directory(str(path)))
            elif self._is_photo(path):
                self._stats["scanned"] += 1
                photos.append(path.resolve())
            else:
                self._stats["skipped"] += 1
                logger.warning(f"Not a supported photo: {path}")
        return photos

    def _scan_directory_iter(self, directory: Path) -> Iterator[Path]:
        try:
            entries = list(directory.iterdir())
        except PermissionError:
            logger.warning(f"Permission denied: {directory}")
            return

        for entry in entries:
            if entry.is_dir() and self.recursive:
                yield from self._scan_directory_iter(entry)
            elif entry.is_file() and entry.suffix.lower() in SUPPORTED_EXTENSIONS:
                if self._is_photo(entry):
                    self._stats["scanned"] += 1
                    yield entry
                else:
                    self._stats["skipped"] += 1

    def _is_photo(self, file_path: Path) -> bool:
        if not file_path.is_file() or file_path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            return False
        try:
            with Image.open(file_path) as img:
                img.verify()
        except UnidentifiedImageError:
            logger.debug(f"Not a valid image file: {file_path}")
            return False
        except Exception as e:
            logger.error(f"Error processing {file_path}: {e}")
            self._stats["errors"] += 1
            return False
        return True

    def get_stats(self) -> dict:
        """Get scanning statistics."""
        return self._stats.copy()


def scan_photos(directory: str, recursive: bool = True) -> List[Path]:
    """Convenience function to scan photos in a directory."""
    scanner = PhotoScanner(recursive=recursive)
    return scanner.scan_directory(directory)
