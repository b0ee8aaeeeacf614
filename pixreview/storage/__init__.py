"""Sidecar persistence."""

from .sidecar import SidecarStore, format_metadata, parse_metadata, sidecar_store

__all__ = [
    "SidecarStore",
    "format_metadata",
    "parse_metadata",
    "sidecar_store",
]
