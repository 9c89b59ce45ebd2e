"""Data models for face regions, photo geometry and exiftool responses."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class FaceTag:
    """One face region read from, or written to, a photo's metadata."""
    name: str
    x: float
    y: float
    w: float
    h: float
    unit: str = "pixel"
    index: int = 0  # 1-based number among the kept face regions

    def __post_init__(self):
        if self.name is None:
            self.name = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "w": self.w,
            "h": self.h,
            "unit": self.unit,
        }


@dataclass
class PhotoGeometry:
    """Image size, orientation and crop rectangle of one photo."""
    width: int = 0
    height: int = 0
    orientation: Optional[int] = None
    crop_x: float = 0.0
    crop_y: float = 0.0
    crop_w: float = 0.0
    crop_h: float = 0.0
    has_crop: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "orientation": self.orientation,
            "crop_x": self.crop_x,
            "crop_y": self.crop_y,
            "crop_w": self.crop_w,
            "crop_h": self.crop_h,
            "has_crop": self.has_crop,
        }


class ResponseStatus(str, Enum):
    """Outcome of waiting for one framed exiftool response."""
    FOUND = "found"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class Response:
    """Response segment for one executed frame."""
    status: ResponseStatus
    body: Optional[str] = None
    sequence: int = 0

    @property
    def ok(self) -> bool:
        return self.status == ResponseStatus.FOUND


class QueryStatus(str, Enum):
    """Outcome of a face region query for one photo."""
    FOUND = "found"
    NO_REGIONS = "no_regions"
    TIMED_OUT = "timed_out"
    DECODE_FAILED = "decode_failed"
    FAILED = "failed"


@dataclass
class RegionsResult:
    """Face regions, geometry and description of one photo."""
    photo_path: str
    status: QueryStatus
    tags: List[FaceTag] = field(default_factory=list)
    geometry: PhotoGeometry = field(default_factory=PhotoGeometry)
    description: str = ""

    @property
    def ok(self) -> bool:
        """True when the query was answered, whether or not it found faces."""
        return self.status in (QueryStatus.FOUND, QueryStatus.NO_REGIONS)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "photo_path": self.photo_path,
            "status": self.status.value,
            "description": self.description,
            "geometry": self.geometry.to_dict(),
            "faces": [tag.to_dict() for tag in self.tags],
        }
