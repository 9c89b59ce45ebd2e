"""Tests for face region extraction and region update syntax."""

import pytest

from face_label_export.exiftool.models import FaceTag
from face_label_export.exiftool.regions import (
    build_add_region_frame,
    build_query_frame,
    extract_face_regions,
    format_one_decimal,
    format_region_list_assignment,
)


def _record(regions, image_info=None, width=4000):
    block = {"RegionList": regions}
    if image_info is not None:
        block["ImageInfo"] = image_info
    return {"ImageWidth": width, "RegionsAbsoluteNotFocus": block}


def _area(x=10, y=20, w=30, h=40):
    return {"X": x, "Y": y, "W": w, "H": h}


class TestExtractFaceRegions:
    """Test turning exiftool JSON into face tags."""

    def test_non_face_regions_dropped_and_renumbered(self):
        record = _record([
            {"Area": _area(), "Name": "one", "Type": "Face"},
            {"Area": _area(), "Name": "eye", "Type": "Eye"},
            {"Area": _area(), "Name": "three", "Type": "Face"},
            {"Area": _area(), "Name": "four"},
        ])
        tags, _ = extract_face_regions(record)
        assert [tag.index for tag in tags] == [1, 2, 3]
        assert [tag.name for tag in tags] == ["one", "three", "four"]

    def test_crop_defaults_to_whole_image(self):
        record = _record([], image_info={"ImageHeight": 3000})
        _, geometry = extract_face_regions(record)
        assert geometry.width == 4000
        assert geometry.height == 3000
        assert geometry.crop_x == 0
        assert geometry.crop_y == 0
        assert geometry.crop_w == 4000
        assert geometry.crop_h == 3000
        assert geometry.has_crop is False

    def test_crop_fields_read(self):
        record = _record([], image_info={
            "ImageHeight": 3000, "Orientation": 6,
            "CropX": 10, "CropY": 20, "CropW": 1000, "CropH": 800, "HasCrop": True,
        })
        _, geometry = extract_face_regions(record)
        assert geometry.orientation == 6
        assert (geometry.crop_x, geometry.crop_y, geometry.crop_w, geometry.crop_h) == (10, 20, 1000, 800)
        assert geometry.has_crop is True

    def test_no_region_block(self):
        tags, geometry = extract_face_regions({"ImageWidth": 1024, "Description": "Sunset"})
        assert tags == []
        assert geometry.width == 1024
        assert geometry.height == 0
        assert geometry.orientation is None
        assert geometry.has_crop is False

    def test_missing_name_becomes_empty(self):
        tags, _ = extract_face_regions(_record([{"Area": _area(), "Name": None}]))
        assert tags[0].name == ""

    def test_numeric_strings_coerced(self):
        record = _record([{"Area": {"X": "12.5", "Y": "7", "W": "100", "H": "80"}, "Name": 42}])
        tag = extract_face_regions(record)[0][0]
        assert (tag.x, tag.y, tag.w, tag.h) == (12.5, 7.0, 100.0, 80.0)
        assert tag.name == "42"
        assert tag.unit == "pixel"

    def test_unusable_areas_skipped(self):
        record = _record([
            {"Name": "no area"},
            {"Area": _area(w=0), "Name": "flat"},
            {"Area": _area(h="abc"), "Name": "garbled"},
            {"Area": _area(), "Name": "good"},
        ])
        tags, _ = extract_face_regions(record)
        assert [(tag.index, tag.name) for tag in tags] == [(1, "good")]

    def test_single_region_not_in_list(self):
        record = _record({"Area": _area(), "Name": "solo", "Type": "Face"})
        tags, _ = extract_face_regions(record)
        assert [tag.name for tag in tags] == ["solo"]

    @pytest.mark.parametrize(
        "printed,code",
        [
            ("Horizontal (normal)", 1),
            ("Mirror horizontal", 2),
            ("Rotate 180", 3),
            ("Mirror vertical", 4),
            ("Mirror horizontal and rotate 270 CW", 5),
            ("Rotate 90 CW", 6),
            ("Mirror horizontal and rotate 90 CW", 7),
            ("Rotate 270 CW", 8),
            ("8", 8),
        ],
    )
    def test_printed_orientation_mapped_to_code(self, printed, code):
        record = _record([], image_info={"ImageHeight": 10, "Orientation": printed})
        _, geometry = extract_face_regions(record)
        assert geometry.orientation == code

    @pytest.mark.parametrize("value", ["Unknown (0)", 0, 9])
    def test_unrecognised_orientation(self, value):
        record = _record([], image_info={"ImageHeight": 10, "Orientation": value})
        _, geometry = extract_face_regions(record)
        assert geometry.orientation is None


class TestRegionUpdateSyntax:
    """Test the RegionList assignment written back to exiftool."""

    def test_replace_formatting(self):
        tag = FaceTag(name="Alice", x=10, y=20.25, w=100, h=50, unit="pixel")
        assert format_region_list_assignment(tag, replace=True) == (
            "REGIONLIST={Area={H=50.0,W=100.0,X=10.0,Y=20.3,Unit=pixel},Name='Alice',Type=Face}"
        )

    def test_append_operator(self):
        tag = FaceTag(name="Bob", x=1, y=2, w=3, h=4)
        assert format_region_list_assignment(tag).startswith("REGIONLIST+={Area=")

    @pytest.mark.parametrize(
        "value,expected",
        [(0.05, "0.1"), (1.25, "1.3"), (2.35, "2.4"), (7, "7.0"), (0.04, "0.0"), (123.449, "123.4")],
    )
    def test_one_decimal_rounds_half_up(self, value, expected):
        assert format_one_decimal(value) == expected

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            format_one_decimal(float("inf"))

    @pytest.mark.parametrize("w,h", [(-5, 10), (10, 0), (0, 0)])
    def test_non_positive_size_rejected(self, w, h):
        tag = FaceTag(name="Neg", x=1, y=1, w=w, h=h)
        with pytest.raises(ValueError, match="positive"):
            format_region_list_assignment(tag)

    def test_structure_delimiters_escaped_in_name(self):
        tag = FaceTag(name="Smith, John {a|b} [x]", x=1, y=1, w=1, h=1)
        assert "Name='Smith|, John {a||b|} [x|]'" in format_region_list_assignment(tag)

    def test_line_breaks_removed_from_name(self):
        tag = FaceTag(name="Anne\nMarie", x=1, y=1, w=1, h=1)
        assert "Name='Anne Marie'" in format_region_list_assignment(tag)

    def test_add_region_frame(self):
        tag = FaceTag(name="Alice", x=10, y=20, w=100, h=50)
        frame = build_add_region_frame(tag, "/photos/a.jpg")
        assert frame[0].startswith("-REGIONLIST+={")
        assert frame[1] == "/photos/a.jpg"


class TestQueryFrame:
    """Test the fields requested for each photo."""

    def test_default_fields(self):
        assert build_query_frame("/photos/a.jpg") == [
            "-struct", "-j", "-RegionsAbsoluteNotFocus", "-Description", "-ImageWidth", "/photos/a.jpg",
        ]

    def test_debug_verbosity_adds_fields(self):
        frame = build_query_frame("/photos/a.jpg", verbosity=5)
        assert "-ImageHeight" in frame
        assert "-Orientation" in frame
        assert frame[-1] == "/photos/a.jpg"
