"""Per-file review metadata kept in ``<path>.txt`` sidecars.

The sidecar is a small sectioned text file::

    === INFO ===
    Selected: true
    Rating: 4
    Last Modified: 2024-05-01T10:00:00.000Z
    Modified By: Ana <a@x.com>

    === COMMENTS ===
    [2024-05-01T10:00:00.000Z] Ana: nice shot

Every mutation is a read-modify-write of the whole file. Nothing is locked:
two writers on the same path race and the later one wins.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from ..config import settings
from ..errors import StorageError, ValidationError
from ..models.metadata import Actor, Metadata, SidecarRead, SidecarState
from ..utils.paths import normalize_path

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".txt"

_INFO_FIELDS = [
    ("Selected", "selected"),
    ("Rating", "rating"),
    ("Last Modified", "last_modified"),
    ("Modified By", "modified_by"),
    ("Converted Path", "converted_path"),
    ("Conversion Date", "conversion_date"),
]


def utc_timestamp() -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(tz=timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _is_section_header(line: str) -> bool:
    line = line.strip()
    return line.startswith("=== ") and line.endswith(" ===") and len(line) >= 8


def _single_line(text: str) -> str:
    return " ".join(part.strip() for part in text.splitlines()).strip()


def clean_metadata(metadata: Metadata) -> Metadata:
    """Make a record safe to serialize: one line per tag and comment.

    Raises ``ValidationError`` for any line that would read back as a
    section header.
    """
    metadata.tags = [t for t in (_single_line(t) for t in metadata.tags) if t]
    metadata.comments = [c for c in (_single_line(c) for c in metadata.comments) if c]
    for attr in ("converted_path", "conversion_date"):
        value = getattr(metadata, attr)
        if value is not None:
            setattr(metadata, attr, _single_line(value) or None)
    notes = (metadata.notes or "").splitlines()
    if any(_is_section_header(line) for line in metadata.tags + metadata.comments + notes):
        raise ValidationError("Metadata text cannot contain section headers")
    if metadata.rating is not None and not 1 <= metadata.rating <= 5:
        raise ValidationError("Rating must be an integer from 1 to 5")
    return metadata


def format_comment(text: str, actor: Actor, timestamp: Optional[str] = None) -> str:
    return f"[{timestamp or utc_timestamp()}] {actor.name}: {text}"


def format_metadata(metadata: Metadata) -> str:
    lines = ["=== INFO ==="]
    for label, attr in _INFO_FIELDS:
        value = getattr(metadata, attr)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        lines.append(f"{label}: {value}")

    if metadata.tags:
        lines += ["", "=== TAGS ==="] + list(metadata.tags)
    if metadata.comments:
        lines += ["", "=== COMMENTS ==="] + list(metadata.comments)
    if metadata.notes:
        lines += ["", "=== NOTES ===", metadata.notes]

    return "\n".join(lines) + "\n"


def parse_metadata(content: str) -> tuple[Metadata, list[str]]:
    """Parse sidecar text. Returns the record and a list of problems found.

    Unknown sections and keys are ignored; only values that cannot be
    represented (e.g. a non-numeric rating) count as problems.
    """
    metadata = Metadata()
    problems: list[str] = []
    notes: list[str] = []
    section = ""

    for raw in content.splitlines():
        line = raw.strip()
        if _is_section_header(line):
            section = line[4:-4].strip().lower()
            continue
        if not line:
            continue

        if section == "info":
            _parse_info_line(metadata, line, problems)
        elif section == "tags":
            metadata.tags.append(line)
        elif section == "comments":
            metadata.comments.append(line)
        elif section == "notes":
            notes.append(line)

    if notes:
        metadata.notes = "\n".join(notes)
    return metadata, problems


def _parse_info_line(metadata: Metadata, line: str, problems: list[str]) -> None:
    for label, attr in _INFO_FIELDS:
        prefix = f"{label}: "
        if not line.startswith(prefix):
            continue
        value = line[len(prefix):].strip()
        if attr == "selected":
            metadata.selected = value == "true"
        elif attr == "rating":
            try:
                rating = int(value)
            except ValueError:
                problems.append(f"invalid rating {value!r}")
                return
            if not 1 <= rating <= 5:
                problems.append(f"rating {rating} out of range")
                return
            metadata.rating = rating
        else:
            setattr(metadata, attr, value)
        return


class SidecarStore:
    """Reads and writes sidecars under a data root.

    ``root`` defaults to ``settings.data_dir`` looked up on every call.
    """

    def __init__(self, root: Optional[Path] = None):
        self._root = Path(root) if root is not None else None

    @property
    def root(self) -> Path:
        return self._root if self._root is not None else Path(settings.data_dir)

    def sidecar_path(self, path: str) -> Path:
        return self.root / f"{normalize_path(path)}{SIDECAR_SUFFIX}"

    # -- reading --

    def read_entry_sync(self, path: str) -> SidecarRead:
        sidecar = self.sidecar_path(path)
        try:
            content = sidecar.read_text(encoding="utf-8")
        except FileNotFoundError:
            return SidecarRead(state=SidecarState.ABSENT)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Unreadable sidecar {sidecar}: {e}")
            return SidecarRead(state=SidecarState.MALFORMED, error=str(e))

        metadata, problems = parse_metadata(content)
        if problems:
            logger.warning(f"Malformed sidecar {sidecar}: {'; '.join(problems)}")
            return SidecarRead(
                state=SidecarState.MALFORMED,
                metadata=metadata,
                error="; ".join(problems),
            )
        return SidecarRead(state=SidecarState.LOADED, metadata=metadata)

    async def read_entry(self, path: str) -> SidecarRead:
        return await asyncio.to_thread(self.read_entry_sync, path)

    async def read(self, path: str) -> Metadata:
        """Load the record for ``path``; absent or broken sidecars read as empty."""
        entry = await self.read_entry(path)
        return entry.metadata

    # -- writing --

    def _write_sync(self, path: str, content: str) -> None:
        sidecar = self.sidecar_path(path)
        try:
            sidecar.parent.mkdir(parents=True, exist_ok=True)
            sidecar.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write sidecar {sidecar}: {e}")
            raise StorageError(f"Failed to save metadata for {path}") from e

    async def write(self, path: str, metadata: Metadata, actor: Actor) -> Metadata:
        clean_metadata(metadata)
        metadata.last_modified = utc_timestamp()
        metadata.modified_by = actor.signature
        await asyncio.to_thread(self._write_sync, path, format_metadata(metadata))
        return metadata

    async def _mutate(
        self, path: str, actor: Actor, change: Callable[[Metadata], None]
    ) -> Metadata:
        metadata = await self.read(path)
        change(metadata)
        return await self.write(path, metadata, actor)

    async def append_comment(self, path: str, text: str, actor: Actor) -> Metadata:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment text is required")
        line = format_comment(" ".join(text.splitlines()), actor)
        return await self._mutate(path, actor, lambda m: m.comments.append(line))

    async def set_rating(self, path: str, rating: int, actor: Actor) -> Metadata:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer from 1 to 5")

        def change(m: Metadata) -> None:
            m.rating = rating

        return await self._mutate(path, actor, change)

    async def toggle_selection(self, path: str, actor: Actor) -> bool:
        def change(m: Metadata) -> None:
            m.selected = not m.selected

        metadata = await self._mutate(path, actor, change)
        return bool(metadata.selected)

    async def set_tags(self, path: str, tags: list[str], actor: Actor) -> Metadata:
        cleaned: list[str] = []
        for tag in tags:
            tag = tag.strip()
            if tag and tag not in cleaned:
                cleaned.append(tag)

        def change(m: Metadata) -> None:
            m.tags = cleaned

        return await self._mutate(path, actor, change)

    async def set_notes(self, path: str, notes: Optional[str], actor: Actor) -> Metadata:
        def change(m: Metadata) -> None:
            m.notes = notes or None

        return await self._mutate(path, actor, change)

    async def record_conversion(self, path: str, converted_path: str, actor: Actor) -> Metadata:
        def change(m: Metadata) -> None:
            m.converted_path = converted_path
            m.conversion_date = utc_timestamp()

        return await self._mutate(path, actor, change)

    async def clear_conversion(self, path: str, actor: Actor) -> Metadata:
        def change(m: Metadata) -> None:
            m.converted_path = None
            m.conversion_date = None

        return await self._mutate(path, actor, change)


sidecar_store = SidecarStore()
