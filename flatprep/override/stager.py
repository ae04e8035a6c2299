"""Stage a prebuilt FFmpeg tarball as the ffmpeg module's source."""

from __future__ import annotations

from dataclasses import dataclass
import json
import os
import shutil
import zipfile
from pathlib import Path
from typing import Dict, List, Sequence

from ..errors import (
    InvalidOverrideArchive,
    MissingOverrideFile,
    ModuleDescriptorNotFound,
    NoMatchingArchiveEntry,
    UnreadableFile,
    WriteFailure,
)
from ..logging import get_logger
from ..models import ARCHIVE, SINGLE_FILE, OverrideArtifact, StagedSource

TARBALL_NAME = "ffmpeg.tar.gz"
_ARCHIVE_SUFFIXES = {".zip"}


@dataclass(frozen=True)
class StagingLayout:
    """Fixed destinations the Flatpak build expects, relative to the repo root."""

    root: Path
    build_dir: str = "build"
    modules_dir: str = "modules"
    tarball_name: str = TARBALL_NAME
    descriptor_name: str = "ffmpeg.json"

    @property
    def repo_copy(self) -> Path:
        return self.root / self.tarball_name

    @property
    def build_copy(self) -> Path:
        return self.root / self.build_dir / self.tarball_name

    @property
    def module_copy(self) -> Path:
        return self.root / self.build_dir / self.modules_dir / self.tarball_name

    @property
    def descriptor(self) -> Path:
        return self.root / self.build_dir / self.modules_dir / self.descriptor_name

    @property
    def source_path(self) -> str:
        """Path written into the descriptor, relative to the descriptor's directory."""
        return Path(os.path.relpath(self.build_copy, self.descriptor.parent)).as_posix()


def inspect_artifact(path: Path) -> OverrideArtifact:
    """Classify an override by extension and list archive entries."""
    if not path.is_file():
        raise MissingOverrideFile(path)
    if path.stat().st_size == 0:
        raise MissingOverrideFile(path, reason="file is empty")

    if path.suffix.lower() not in _ARCHIVE_SUFFIXES:
        return OverrideArtifact(path=path, kind=SINGLE_FILE)
    try:
        with zipfile.ZipFile(path, "r") as archive:
            names = archive.namelist()
    except (zipfile.BadZipFile, OSError) as exc:
        raise InvalidOverrideArchive(path, str(exc)) from exc
    return OverrideArtifact(path=path, kind=ARCHIVE, entries=names)


def candidate_patterns(arch: str) -> tuple[str, str]:
    return (f"Linux-{arch}-{TARBALL_NAME}", TARBALL_NAME)


def select_entry(names: Sequence[str], arch: str) -> str | None:
    """Pick the archive entry to stage.

    Entries built for ``arch`` win; otherwise any ffmpeg tarball is accepted.
    Ties go to the first entry in archive listing order.
    """
    preferred_suffix, fallback_suffix = candidate_patterns(arch)
    preferred = [name for name in names if name.endswith(preferred_suffix)]
    fallback = [name for name in names if name.endswith(fallback_suffix)]
    candidates = preferred or fallback
    if not candidates:
        return None
    return candidates[0]


class SourceOverrideStager:
    """Copies an override payload to every path the build reads it from."""

    def __init__(self, layout: StagingLayout) -> None:
        self.layout = layout
        self.logger = get_logger("override")

    def stage(self, override_path: Path | str, arch: str) -> StagedSource:
        """Stage ``override_path`` and point the module descriptor at it."""
        artifact = inspect_artifact(Path(override_path))
        layout = self.layout

        selected: str | None = None
        if artifact.is_archive:
            selected = select_entry(artifact.entries, arch)
            if selected is None:
                raise NoMatchingArchiveEntry(artifact.path, candidate_patterns(arch))
            self.logger.debug("Selected %s from %s", selected, artifact.path)

        if not layout.descriptor.is_file():
            raise ModuleDescriptorNotFound(layout.descriptor)
        descriptor_data = self._load_descriptor(layout.descriptor)

        if selected is not None:
            self._extract(artifact.path, selected, layout.repo_copy)
        else:
            self._copy(artifact.path, layout.repo_copy)
        self._copy(layout.repo_copy, layout.build_copy)
        self._copy(layout.repo_copy, layout.module_copy)

        self._rewrite_descriptor(layout.descriptor, descriptor_data, layout.source_path)

        self.logger.info("Using overridden FFmpeg tarball: %s", layout.repo_copy)
        self.logger.info("Also copied to: %s and %s", layout.build_copy, layout.module_copy)
        return StagedSource(
            repo_copy=layout.repo_copy,
            build_copy=layout.build_copy,
            module_copy=layout.module_copy,
            descriptor=layout.descriptor,
            source_path=layout.source_path,
            selected_entry=selected,
        )

    # ------------------------------------------------------------------
    # Helpers

    @staticmethod
    def _extract(archive_path: Path, entry: str, destination: Path) -> None:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive_path, "r") as archive:
                with archive.open(entry, "r") as reader, destination.open("wb") as writer:
                    shutil.copyfileobj(reader, writer)
        except zipfile.BadZipFile as exc:
            raise InvalidOverrideArchive(archive_path, f"{entry}: {exc}") from exc
        except OSError as exc:
            raise WriteFailure(destination, exc) from exc

    def _copy(self, source: Path, destination: Path) -> None:
        if destination.exists() and os.path.samefile(source, destination):
            self.logger.debug("%s is already in place", destination)
            return
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)
        except OSError as exc:
            raise WriteFailure(destination, exc) from exc

    @staticmethod
    def _load_descriptor(descriptor: Path) -> Dict[str, object]:
        try:
            data = json.loads(descriptor.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise UnreadableFile(descriptor, f"invalid module JSON ({exc})") from exc
        except OSError as exc:
            raise WriteFailure(descriptor, exc, action="read") from exc
        if not isinstance(data, dict):
            raise UnreadableFile(descriptor, "module JSON must be an object")
        return data

    def _rewrite_descriptor(
        self, descriptor: Path, data: Dict[str, object], source_path: str
    ) -> None:
        sources: List[Dict[str, str]] = [{"type": "file", "path": source_path}]
        data["sources"] = sources
        try:
            descriptor.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise WriteFailure(descriptor, exc) from exc
        self.logger.debug("Rewrote sources in %s -> %s", descriptor, source_path)


__all__ = [
    "SourceOverrideStager",
    "StagingLayout",
    "TARBALL_NAME",
    "candidate_patterns",
    "inspect_artifact",
    "select_entry",
]
