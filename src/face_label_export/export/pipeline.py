"""Export pipeline: read face regions for each photo and burn the labels in."""

import logging
import random
import shutil
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from face_label_export.config import ExportConfig
from face_label_export.exiftool.client import ExifToolClient
from face_label_export.exiftool.models import FaceTag, PhotoGeometry, RegionsResult
from face_label_export.exiftool.session import ExifToolSession
from face_label_export.export.imagemagick import ImageMagickScript, quote

logger = logging.getLogger(__name__)

# Courier is monospaced: each character is 0.6 of the point size wide
CHAR_WIDTH_RATIO = 0.6
TRANSPARENT_FILL = '"rgba( 255, 255, 255, 0.0)"'


def randomise_string(text: str, rng: Optional[random.Random] = None) -> str:
    """Replace letters and digits with random ones, keeping spaces.

    Used to obfuscate label names, e.g. for sharing sample exports.
    """
    rng = rng or random.Random()
    chars = []
    for char in text:
        if char == " ":
            chars.append(" ")
        elif char.isdigit():
            chars.append(rng.choice(string.digits))
        else:
            chars.append(rng.choice(string.ascii_letters))
    return "".join(chars)


def keep_within_image(
    x: float, y: float, w: float, h: float, geometry: PhotoGeometry, margin: float
) -> Tuple[float, float]:
    """Shift a box so it stays inside the crop area (or whole image) less a margin."""
    left = geometry.crop_x
    top = geometry.crop_y
    right = geometry.crop_x + geometry.crop_w if geometry.crop_w else geometry.width
    bottom = geometry.crop_y + geometry.crop_h if geometry.crop_h else geometry.height

    if right and x + w > right - margin:
        x = right - margin - w
    if bottom and y + h > bottom - margin:
        y = bottom - margin - h
    # top-left wins when the box is bigger than the image
    x = max(x, left + margin)
    y = max(y, top + margin)
    return x, y


@dataclass
class ExportSummary:
    """Outcome of an export batch."""
    processed: int = 0
    labelled: int = 0
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def message(self) -> str:
        """One combined message for the whole batch."""
        if not self.failures:
            return f"{self.labelled} of {self.processed} photos labelled"
        if len(self.failures) == 1:
            header = "1 labelled photo failed to export correctly"
        else:
            header = f"{len(self.failures)} labelled photos failed to export correctly"
        return header + "\n" + "\n".join(self.failures)


class FaceLabelExporter:
    """Labels a batch of photos using one exiftool session for the whole batch."""

    def __init__(self, config: Optional[ExportConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or ExportConfig()
        self.rng = rng or random.Random()

    async def run(self, photo_paths: Iterable[str], output_dir: Optional[str] = None) -> ExportSummary:
        """Label each photo in turn.

        Photos are labelled in place, or copied into ``output_dir`` first. A
        failure on one photo is recorded in the summary and the batch carries on.
        """
        summary = ExportSummary()
        config = self.config
        session = ExifToolSession(
            exiftool_app=config.exiftool_app,
            config_file=config.exiftool_config_file,
            scratch_dir=config.scratch_dir,
            delete_logs=config.delete_logs,
            response_timeout=config.response_timeout,
        )
        script = ImageMagickScript(
            app=config.imagemagick_app,
            scratch_dir=config.scratch_dir,
            delete_logs=config.delete_logs,
        )
        try:
            if not await session.open():
                summary.failures.append("exiftool could not be started")
                return summary
            client = ExifToolClient(session, verbosity=config.verbosity)

            for photo_path in photo_paths:
                summary.processed += 1
                try:
                    target = self._prepare_target(Path(photo_path), output_dir)
                except OSError as e:
                    logger.error(f"Could not copy {photo_path}: {e}")
                    summary.failures.append(f"{photo_path}: could not copy to output ({e})")
                    continue

                logger.info(f"Exporting to: '{target}'")
                failure = await self.render_photo(client, script, target)
                if failure:
                    summary.failures.append(f"{target}: {failure}")
                else:
                    summary.labelled += 1
        finally:
            await session.close()
            script.cleanup()

        if summary.failures:
            logger.warning(summary.message())
        return summary

    async def render_photo(
        self, client: ExifToolClient, script: ImageMagickScript, photo_path: Path
    ) -> Optional[str]:
        """Label one photo.

        Returns:
            None on success, otherwise the reason for the failure.
        """
        result = await client.get_face_regions(str(photo_path))
        if not result.ok:
            return f"face region query {result.status.value}"

        script.start_new_command()
        for command in self.build_label_commands(result, photo_path):
            if not script.add_command(command):
                return "could not write ImageMagick script"
        if not await script.execute():
            return "ImageMagick failed"
        return None

    def build_label_commands(self, result: RegionsResult, photo_path: Path) -> List[str]:
        """ImageMagick script lines that label ``photo_path`` in place."""
        config = self.config
        geometry = result.geometry

        input_line = quote(photo_path)
        if config.obfuscate_image:  # fade image
            input_line += " -fill white -colorize 95%"
        if config.remove_exif:
            input_line += " -strip"
        commands = ["# Input file", input_line]

        if config.label_image and result.tags:
            if config.draw_face_outlines:
                commands.append("# Person face outlines")
                commands.append(
                    f"-strokewidth {int(config.face_outline_line_width)} "
                    f"-stroke {config.face_outline_colour} -fill {TRANSPARENT_FILL}"
                )
                for tag in result.tags:
                    commands.append(
                        f'-draw "rectangle {int(tag.x)},{int(tag.y)} '
                        f'{int(tag.x + tag.w)},{int(tag.y + tag.h)}"'
                    )

            if config.draw_label_text:
                commands.append("# Face labels")
                commands.append(
                    f"-font {config.font_type} -pointsize {int(config.font_size)} -stroke none "
                    f"-fill {config.font_colour} -undercolor {quote(config.label_undercolour)}"
                )
                for tag in result.tags:
                    label = self._label_text(tag)
                    if not label:
                        continue
                    x, y = self._label_position(tag, label, geometry)
                    logger.debug(f"Face label: {label}")
                    commands.append(f"-gravity NorthWest -annotate +{int(x)}+{int(y)} {quote(label)}")

        if config.crop_image and geometry.has_crop:
            crop = (
                f"-crop {int(geometry.crop_w)}x{int(geometry.crop_h)}"
                f"+{int(geometry.crop_x)}+{int(geometry.crop_y)}"
            )
            logger.debug(f"Crop image: {crop}")
            commands.append(crop)
        else:
            logger.debug("No crop selected")

        commands.append(f"-write {quote(photo_path)}")
        return commands

    def _label_text(self, tag: FaceTag) -> str:
        if self.config.obfuscate_labels:
            return randomise_string(tag.name, self.rng)
        return tag.name

    def _label_position(self, tag: FaceTag, label: str, geometry: PhotoGeometry) -> Tuple[float, float]:
        font_size = self.config.font_size
        margin = self.config.image_margin
        width = len(label) * font_size * CHAR_WIDTH_RATIO
        x = tag.x + (tag.w - width) / 2
        y = tag.y + tag.h + margin
        return keep_within_image(x, y, width, font_size, geometry, margin)

    def _prepare_target(self, photo_path: Path, output_dir: Optional[str]) -> Path:
        if output_dir is None:
            return photo_path
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        target = out / photo_path.name
        shutil.copy2(photo_path, target)
        return target
