"""Relative path handling shared by the file tree and sidecar store."""

from typing import Optional

from ..errors import ForbiddenError


def normalize_path(path: Optional[str]) -> str:
    """Slash-separated, no leading/trailing slashes, no ``.`` segments.

    ``..`` segments are refused so a normalized path never climbs above
    the folder it names.
    """
    parts = [p for p in (path or "").replace("\\", "/").split("/") if p and p != "."]
    if ".." in parts:
        raise ForbiddenError("Parent directory segments are not allowed")
    return "/".join(parts)
