"""Extraction of face regions from exiftool JSON and region update syntax."""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from face_label_export.exiftool.models import FaceTag, PhotoGeometry

logger = logging.getLogger(__name__)

# Composite tag defined by the exiftool config file: face regions in absolute
# pixels, with the focus-point regions left out
REGIONS_TAG = "RegionsAbsoluteNotFocus"

QUERY_ARGS = ["-struct", "-j", "-" + REGIONS_TAG, "-Description", "-ImageWidth"]
DEBUG_QUERY_ARGS = ["-RegionsCentred", "-AlreadyApplied", "-ImageHeight", "-Orientation"]
DEBUG_VERBOSITY = 5

ONE_DECIMAL = Decimal("0.1")

# delimiters of exiftool's serialized structure syntax
STRUCTURE_SPECIALS = "|,]}"

# exiftool prints EXIF orientation as text unless run with -n
ORIENTATION_CODES = {
    "horizontal (normal)": 1,
    "mirror horizontal": 2,
    "rotate 180": 3,
    "mirror vertical": 4,
    "mirror horizontal and rotate 270 cw": 5,
    "rotate 90 cw": 6,
    "mirror horizontal and rotate 90 cw": 7,
    "rotate 270 cw": 8,
}


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _to_orientation(value: Any) -> Optional[int]:
    """EXIF orientation code 1..8 from a numeric or printed exiftool value."""
    if isinstance(value, str) and value.strip().lower() in ORIENTATION_CODES:
        return ORIENTATION_CODES[value.strip().lower()]
    code = _to_int(value, default=None)
    if code is not None and not 1 <= code <= 8:
        code = None
    if code is None and value is not None:
        logger.debug(f"Unrecognised orientation: {value!r}")
    return code


def _extract_geometry(record: Dict[str, Any], image_info: Optional[Dict[str, Any]]) -> PhotoGeometry:
    geometry = PhotoGeometry(width=_to_int(record.get("ImageWidth")) or 0)
    if image_info is None:
        return geometry

    geometry.height = _to_int(image_info.get("ImageHeight")) or 0
    geometry.orientation = _to_orientation(image_info.get("Orientation"))
    geometry.crop_x = _to_float(image_info.get("CropX"), 0.0)
    geometry.crop_y = _to_float(image_info.get("CropY"), 0.0)
    geometry.crop_w = _to_float(image_info.get("CropW"), float(geometry.width))
    geometry.crop_h = _to_float(image_info.get("CropH"), float(geometry.height))
    geometry.has_crop = _to_bool(image_info.get("HasCrop", False))
    return geometry


def _region_to_tag(region: Dict[str, Any]) -> Optional[FaceTag]:
    area = region.get("Area")
    if not isinstance(area, dict):
        return None
    name = region.get("Name")
    return FaceTag(
        name="" if name is None else str(name),
        x=_to_float(area.get("X")),
        y=_to_float(area.get("Y")),
        w=_to_float(area.get("W")),
        h=_to_float(area.get("H")),
        unit=str(area.get("Unit") or "pixel"),
    )


def extract_face_regions(record: Dict[str, Any]) -> Tuple[List[FaceTag], PhotoGeometry]:
    """Turn one exiftool JSON record into face tags and photo geometry.

    Only regions typed ``Face``, or with no type at all, are kept. Kept
    regions are numbered 1..N in the order they appear, counting kept
    regions only. A record without a region block is a valid photo with no
    faces: its geometry carries the image width and nothing else.

    Args:
        record: First element of the JSON array printed by ``exiftool -j``.

    Returns:
        Tuple of (face tags, photo geometry).
    """
    regions_info = record.get(REGIONS_TAG)
    if not isinstance(regions_info, dict):
        logger.debug("No face region block in metadata")
        return [], _extract_geometry(record, None)

    image_info = regions_info.get("ImageInfo")
    geometry = _extract_geometry(record, image_info if isinstance(image_info, dict) else {})

    region_list = regions_info.get("RegionList") or []
    if isinstance(region_list, dict):
        # a single region is not always wrapped in a list
        region_list = [region_list]

    tags: List[FaceTag] = []
    for position, region in enumerate(region_list, 1):
        if not isinstance(region, dict):
            logger.warning(f"Skipping malformed region {position}: {region!r}")
            continue
        region_type = region.get("Type")
        if region_type is not None and region_type != "Face":
            logger.debug(f"Skipping region {position} of type {region_type}")
            continue
        tag = _region_to_tag(region)
        if tag is None or tag.w <= 0 or tag.h <= 0:
            logger.warning(f"Skipping face region {position} with an unusable area: {region!r}")
            continue
        tag.index = len(tags) + 1
        tags.append(tag)
        logger.debug(
            f"Face region {tag.index}: '{tag.name}' x:{tag.x:g} y:{tag.y:g} w:{tag.w:g} h:{tag.h:g}"
        )

    return tags, geometry


def format_one_decimal(value: float) -> str:
    """Format with exactly one fractional digit, rounding halves up."""
    if not math.isfinite(value):
        raise ValueError(f"Not a finite number: {value!r}")
    return str(Decimal(str(value)).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP))


def escape_structure_value(value: str) -> str:
    """Prefix exiftool structure delimiters with ``|`` so they stay literal."""
    return "".join("|" + char if char in STRUCTURE_SPECIALS else char for char in value)


def format_region_list_assignment(tag: FaceTag, replace: bool = False) -> str:
    """Serialise a face tag as an exiftool RegionList structure assignment.

    exiftool parses this with a strict grammar, so the layout is fixed:
    ``REGIONLIST+={Area={H=..,W=..,X=..,Y=..,Unit=..},Name='..',Type=Face}``
    with ``=`` in place of ``+=`` when replacing the existing list.

    Raises:
        ValueError: If the region has a non-positive size or a non-finite
            coordinate.
    """
    if not (tag.w > 0 and tag.h > 0):
        raise ValueError(f"Face region size must be positive, got w={tag.w} h={tag.h}")
    operator = "=" if replace else "+="
    name = escape_structure_value(tag.name.replace("\r", " ").replace("\n", " "))
    return "REGIONLIST%s{Area={H=%s,W=%s,X=%s,Y=%s,Unit=%s},Name='%s',Type=Face}" % (
        operator,
        format_one_decimal(tag.h),
        format_one_decimal(tag.w),
        format_one_decimal(tag.x),
        format_one_decimal(tag.y),
        tag.unit,
        name,
    )


def build_add_region_frame(tag: FaceTag, photo_path: str, replace: bool = False) -> List[str]:
    return ["-" + format_region_list_assignment(tag, replace), str(photo_path)]


def build_query_frame(photo_path: str, verbosity: int = 0) -> List[str]:
    args = list(QUERY_ARGS)
    if verbosity >= DEBUG_VERBOSITY:
        # more fields to help with debug
        args.extend(DEBUG_QUERY_ARGS)
    args.append(str(photo_path))
    return args
