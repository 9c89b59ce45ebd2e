"""Shared test fixtures."""

import json
import stat
import sys
from pathlib import Path

import pytest

from face_label_export.config import ExportConfig

FAKE_EXIFTOOL = Path(__file__).parent / "fake_exiftool.py"

SAMPLE_RECORDS = {
    "family.jpg": {
        "Description": "Picnic",
        "ImageWidth": 4000,
        "RegionsAbsoluteNotFocus": {
            "ImageInfo": {
                "ImageHeight": 3000,
                "Orientation": 1,
                "CropX": 100,
                "CropY": 50,
                "CropW": 3000,
                "CropH": 2000,
                "HasCrop": True,
            },
            "RegionList": [
                {"Area": {"X": 100, "Y": 200, "W": 300, "H": 400, "Unit": "pixel"}, "Name": "Alice", "Type": "Face"},
                {"Area": {"X": 10, "Y": 20, "W": 30, "H": 40}, "Name": "Rex", "Type": "Pet"},
                {"Area": {"X": 1500, "Y": 900, "W": 250, "H": 250}, "Name": "Bob"},
            ],
        },
    },
    "landscape.jpg": {
        "ImageWidth": 1024,
    },
}


def _write_executable(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_exiftool(tmp_path, monkeypatch):
    """Executable that speaks the exiftool stay-open protocol."""
    if sys.platform == "win32":
        pytest.skip("fake exiftool wrapper needs a POSIX shell")
    data_file = tmp_path / "records.json"
    data_file.write_text(json.dumps(SAMPLE_RECORDS), encoding="utf-8")
    monkeypatch.setenv("FAKE_EXIFTOOL_DATA", str(data_file))
    monkeypatch.setenv("FAKE_EXIFTOOL_MODE", "normal")
    return str(_write_executable(
        tmp_path / "exiftool",
        f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_EXIFTOOL}" "$@"\n',
    ))


@pytest.fixture
def fake_magick(tmp_path, monkeypatch):
    """Executable that records each ImageMagick script it is asked to run."""
    if sys.platform == "win32":
        pytest.skip("fake magick wrapper needs a POSIX shell")
    monkeypatch.delenv("FAKE_MAGICK_STATUS", raising=False)
    record = tmp_path / "magick_scripts.txt"
    record.write_text("", encoding="utf-8")
    script = _write_executable(
        tmp_path / "magick",
        f'#!/bin/sh\ncat "$2" >> "{record}"\necho "=== end" >> "{record}"\nexit ${{FAKE_MAGICK_STATUS:-0}}\n',
    )
    return str(script), record


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return str(path)


@pytest.fixture
def export_config(fake_exiftool, fake_magick, scratch_dir):
    """Configuration wired to the fake helper applications."""
    return ExportConfig(
        exiftool_app=fake_exiftool,
        imagemagick_app=fake_magick[0],
        scratch_dir=scratch_dir,
        response_timeout=5.0,
    )


@pytest.fixture
def photo_dir(tmp_path):
    """Directory holding placeholder files named like the sample records."""
    path = tmp_path / "photos"
    path.mkdir()
    for name in list(SAMPLE_RECORDS) + ["stranger.jpg"]:
        (path / name).write_bytes(b"placeholder")
    return path
