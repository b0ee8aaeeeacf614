"""Browse and mutate the folder tree under the data root."""

import asyncio
import locale
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Optional

from ..config import settings
from ..errors import ForbiddenError, NotFoundError, StorageError, ValidationError
from ..models.common import ContentFile, FileCheck, FileKind, FolderNode
from ..storage.sidecar import SIDECAR_SUFFIX, SidecarStore, sidecar_store
from ..utils.paths import normalize_path

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".webm": "video/webm",
    ".pdf": "application/pdf",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

THUMB_SUFFIX = "_thumb.jpg"
PREVIEW_TRACK_SUFFIX = "_thumbnails.vtt"
PREVIEW_DIR_SUFFIX = "_thumbnails"
CONVERTED_MARKER = "_converted"

_COPY_CHUNK = 1024 * 1024


def mime_type_for(name: str) -> str:
    return MIME_TYPES.get(PurePosixPath(name).suffix.lower(), DEFAULT_MIME_TYPE)


def is_derived_artifact(name: str, is_dir: bool) -> bool:
    """True for entries that listings must hide: dotfiles, sidecars and generated media."""
    if name.startswith("."):
        return True
    if is_dir:
        return name.endswith(PREVIEW_DIR_SUFFIX)
    return (
        name.endswith(SIDECAR_SUFFIX)
        or name.endswith(THUMB_SUFFIX)
        or name.endswith(PREVIEW_TRACK_SUFFIX)
        or PurePosixPath(name).stem.endswith(CONVERTED_MARKER)
    )


def _sort_key(entry: ContentFile) -> tuple:
    return (entry.kind != FileKind.FOLDER, locale.strxfrm(entry.name.casefold()))


class FileTree:
    def __init__(self, root: Optional[Path] = None, store: Optional[SidecarStore] = None):
        self._root = Path(root) if root is not None else None
        self.store = store or (SidecarStore(root) if root is not None else sidecar_store)

    @property
    def root(self) -> Path:
        return self._root if self._root is not None else Path(settings.data_dir)

    def ensure_root(self) -> Path:
        root = self.root
        root.mkdir(parents=True, exist_ok=True)
        return root

    def resolve(self, path: Optional[str]) -> Path:
        """Absolute location of ``path``; refuses anything outside the root."""
        root = self.root.resolve()
        full = (root / normalize_path(path)).resolve()
        try:
            full.relative_to(root)
        except ValueError:
            raise ForbiddenError("Path escapes the data directory")
        return full

    # -- listing --

    def _scan(self, rel: str) -> list[ContentFile]:
        self.ensure_root()
        directory = self.resolve(rel)
        entries: list[ContentFile] = []
        try:
            for child in directory.iterdir():
                is_dir = child.is_dir()
                if is_derived_artifact(child.name, is_dir):
                    continue
                stat = child.stat()
                entries.append(ContentFile(
                    name=child.name,
                    path=f"{rel}/{child.name}" if rel else child.name,
                    kind=FileKind.FOLDER if is_dir else FileKind.FILE,
                    size=None if is_dir else stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    mime_type=None if is_dir else mime_type_for(child.name),
                ))
        except OSError as e:
            logger.error(f"Error listing {directory}: {e}")
            raise StorageError("Listing failed") from e
        return sorted(entries, key=_sort_key)

    async def list_dir(self, path: Optional[str] = "", with_metadata: bool = False) -> list[ContentFile]:
        rel = normalize_path(path)
        entries = await asyncio.to_thread(self._scan, rel)
        if with_metadata:
            for entry in entries:
                if entry.kind == FileKind.FILE:
                    entry.metadata = await self.store.read(entry.path)
        return entries

    def folder_tree(self, path: str = "") -> list[FolderNode]:
        """Non-hidden folders below ``path``, recursively, for the start-path picker."""
        rel = normalize_path(path)
        try:
            children = [c for c in self.resolve(rel).iterdir() if c.is_dir() and not c.name.startswith(".")]
        except OSError:
            return []

        nodes = []
        for child in sorted(children, key=lambda c: locale.strxfrm(c.name.casefold())):
            child_rel = f"{rel}/{child.name}" if rel else child.name
            nodes.append(FolderNode(
                name=child.name,
                path=child_rel,
                children=self.folder_tree(child_rel),
            ))
        return nodes

    def stat(self, path: str) -> FileCheck:
        rel = normalize_path(path)
        full = self.resolve(rel)
        try:
            st = full.stat()
        except OSError:
            return FileCheck(exists=False, path=rel)
        return FileCheck(
            exists=True,
            path=rel,
            size=st.st_size,
            is_file=full.is_file(),
            is_directory=full.is_dir(),
        )

    # -- mutation --

    def create_folder(self, path: str) -> str:
        rel = normalize_path(path)
        if not rel:
            raise ValidationError("Folder name is required")
        full = self.resolve(rel)
        try:
            full.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create folder {full}: {e}")
            raise StorageError("Folder could not be created") from e
        logger.info(f"Created folder {rel}")
        return rel

    def delete(self, path: str) -> None:
        """Remove a file, or a folder with everything in it. Sidecars are left alone."""
        rel = normalize_path(path)
        if not rel:
            raise ValidationError("File path is required")
        full = self.resolve(rel)
        if not full.exists():
            raise NotFoundError(f"Not found: {rel}")
        try:
            if full.is_dir():
                shutil.rmtree(full)
            else:
                full.unlink()
        except OSError as e:
            logger.error(f"Delete failed for {full}: {e}")
            raise StorageError("Delete failed") from e
        logger.info(f"Deleted {rel}")

    def save_upload(self, folder: str, filename: str, stream: BinaryIO, max_bytes: Optional[int] = None) -> str:
        name = PurePosixPath((filename or "").replace("\\", "/")).name
        if not name or name.startswith("."):
            raise ValidationError("Invalid file name")
        if max_bytes is None:
            max_bytes = settings.max_upload_size_mb * 1024 * 1024

        rel = normalize_path(f"{folder}/{name}" if folder else name)
        dest = self.resolve(rel)
        written = 0
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(dest, "wb") as out:
                while True:
                    chunk = stream.read(_COPY_CHUNK)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_bytes:
                        break
                    out.write(chunk)
        except OSError as e:
            dest.unlink(missing_ok=True)
            logger.error(f"Upload to {dest} failed: {e}")
            raise StorageError("Upload failed") from e

        if written > max_bytes:
            dest.unlink(missing_ok=True)
            raise ValidationError("File too large")
        logger.info(f"Stored upload {rel} ({written} bytes)")
        return rel


file_tree = FileTree()
