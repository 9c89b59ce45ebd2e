"""Face region queries and updates over an exiftool session."""

import json
import logging
import re
from typing import Optional

from face_label_export.exiftool.models import (
    FaceTag,
    QueryStatus,
    RegionsResult,
    ResponseStatus,
)
from face_label_export.exiftool.regions import (
    build_add_region_frame,
    build_query_frame,
    extract_face_regions,
)
from face_label_export.exiftool.session import ExifToolSession

logger = logging.getLogger(__name__)

UPDATED_PATTERN = re.compile(r"(\d+)\s+image files? updated")


class ExifToolClient:
    """Reads and writes face regions through one open exiftool session."""

    def __init__(self, session: ExifToolSession, verbosity: int = 2):
        self.session = session
        self.verbosity = verbosity

    async def get_face_regions(self, photo_path: str) -> RegionsResult:
        """Fetch face regions, geometry and description of a photo.

        The result distinguishes a photo without faces (``NO_REGIONS``) from a
        query that went unanswered (``TIMED_OUT``), produced unreadable output
        (``DECODE_FAILED``) or could not be sent (``FAILED``).
        """
        photo_path = str(photo_path)
        logger.debug(f"Parse photo: {photo_path}")

        if not await self.session.send_frame(build_query_frame(photo_path, self.verbosity)):
            logger.warning(f"Face region query could not be sent: {photo_path}")
            return RegionsResult(photo_path, QueryStatus.FAILED)

        response = await self.session.execute_and_await()
        if response.status == ResponseStatus.TIMED_OUT:
            logger.warning(f"Face region query timed out: {photo_path}")
            return RegionsResult(photo_path, QueryStatus.TIMED_OUT)
        if not response.ok:
            logger.warning(f"Face region query failed: {photo_path}")
            return RegionsResult(photo_path, QueryStatus.FAILED)

        record = self._decode_record(response.body, photo_path)
        if record is None:
            return RegionsResult(photo_path, QueryStatus.DECODE_FAILED)

        tags, geometry = extract_face_regions(record)
        description = record.get("Description")
        result = RegionsResult(
            photo_path=photo_path,
            status=QueryStatus.FOUND if tags else QueryStatus.NO_REGIONS,
            tags=tags,
            geometry=geometry,
            description="" if description is None else str(description),
        )
        logger.info(f"{photo_path}: {len(tags)} face region(s)")
        return result

    async def add_face_region(self, photo_path: str, tag: FaceTag, replace: bool = False) -> bool:
        """Append a face region to a photo, or replace all its regions with it.

        Returns:
            True if exiftool reported the file as updated.
        """
        photo_path = str(photo_path)
        try:
            frame = build_add_region_frame(tag, photo_path, replace)
        except ValueError as e:
            logger.error(f"Face region for {photo_path} not written: {e}")
            return False

        if not await self.session.send_frame(frame):
            logger.warning(f"Face region update could not be sent: {photo_path}")
            return False
        logger.info(f"Adding face region '{tag.name}' to {photo_path}")
        logger.debug(frame[0])

        response = await self.session.execute_and_await()
        if not response.ok:
            logger.warning(f"Face region update got no response ({response.status.value}): {photo_path}")
            return False

        match = UPDATED_PATTERN.search(response.body or "")
        if not match or int(match.group(1)) < 1:
            logger.warning(f"exiftool did not update {photo_path}: {(response.body or '').strip()!r}")
            return False
        return True

    @staticmethod
    def _decode_record(body: Optional[str], photo_path: str) -> Optional[dict]:
        try:
            results = json.loads(body or "")
        except json.JSONDecodeError as e:
            logger.warning(f"JSON decode of results failed for {photo_path}: {e}")
            return None
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            logger.warning(f"Unexpected exiftool JSON for {photo_path}: {results!r}")
            return None
        return results[0]
