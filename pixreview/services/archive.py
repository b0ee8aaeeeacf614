"""Zip a collection of files for download."""

import io
import logging
import zipfile
from datetime import date
from pathlib import PurePosixPath
from typing import Optional

from ..errors import ForbiddenError, ValidationError
from ..utils.paths import normalize_path
from .file_tree import file_tree

logger = logging.getLogger(__name__)


def archive_filename(today: Optional[date] = None) -> str:
    return f"collection-{(today or date.today()).isoformat()}.zip"


def build_archive(paths: list[str]) -> bytes:
    """Deflated zip of ``paths`` stored under their base names.

    Folders, missing files and paths outside the data root are skipped.
    Repeated base names get a numeric suffix so nothing is overwritten.
    """
    if not paths:
        raise ValidationError("No files provided")

    buffer = io.BytesIO()
    used: set[str] = set()
    added = 0
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for raw in paths:
            try:
                rel = normalize_path(raw)
                full = file_tree.resolve(rel)
            except ForbiddenError:
                logger.warning(f"Skipping path outside data root: {raw}")
                continue
            if not full.is_file():
                logger.warning(f"Skipping non-file: {rel}")
                continue

            name = PurePosixPath(rel).name
            stem, suffix = PurePosixPath(name).stem, PurePosixPath(name).suffix
            counter = 1
            while name in used:
                name = f"{stem}_{counter}{suffix}"
                counter += 1
            used.add(name)

            zf.write(full, arcname=name)
            added += 1

    if added == 0:
        raise ValidationError("No valid files to archive")

    data = buffer.getvalue()
    logger.info(f"Archive created with {added} files, size: {len(data)} bytes")
    return data
