"""face-label-export - label exported photos with the face regions stored in their metadata."""

__version__ = "0.1.0"
__author__ = "face-label-export contributors"
__license__ = "MIT"

import logging

from .config import ExportConfig
from .exiftool.client import ExifToolClient
from .exiftool.models import FaceTag, PhotoGeometry, QueryStatus, RegionsResult
from .exiftool.session import ExifToolSession

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "ExportConfig",
    "ExifToolClient",
    "ExifToolSession",
    "FaceTag",
    "PhotoGeometry",
    "QueryStatus",
    "RegionsResult",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
