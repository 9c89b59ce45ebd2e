"""exiftool session protocol and face region model."""

from face_label_export.exiftool.client import ExifToolClient
from face_label_export.exiftool.models import (
    FaceTag,
    PhotoGeometry,
    QueryStatus,
    RegionsResult,
    Response,
    ResponseStatus,
)
from face_label_export.exiftool.regions import (
    build_add_region_frame,
    extract_face_regions,
    format_region_list_assignment,
)
from face_label_export.exiftool.session import ExifToolSession, SessionState

__all__ = [
    "ExifToolClient",
    "ExifToolSession",
    "FaceTag",
    "PhotoGeometry",
    "QueryStatus",
    "RegionsResult",
    "Response",
    "ResponseStatus",
    "SessionState",
    "build_add_region_frame",
    "extract_face_regions",
    "format_region_list_assignment",
]
