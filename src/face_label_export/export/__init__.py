"""Export pipeline: photo discovery, ImageMagick batching and labelling."""

from face_label_export.export.imagemagick import ImageMagickScript
from face_label_export.export.pipeline import ExportSummary, FaceLabelExporter
from face_label_export.export.scanner import PhotoScanner, scan_photos

__all__ = [
    "ExportSummary",
    "FaceLabelExporter",
    "ImageMagickScript",
    "PhotoScanner",
    "scan_photos",
]
