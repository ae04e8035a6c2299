"""Manifest patching for release builds."""

from .patcher import GIT_SOURCE_MARKER, ManifestPatcher, find_source_blocks

__all__ = ["GIT_SOURCE_MARKER", "ManifestPatcher", "find_source_blocks"]
