"""Fatal errors raised while preparing a release manifest."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class PrepError(RuntimeError):
    """Base class for failures that abort a preparation run."""


class MissingOverrideFile(PrepError):
    """Raised when the override artifact is absent or empty."""

    def __init__(self, path: Path, *, reason: str = "file not found") -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"FFmpeg override {reason}: {path}")


class NoMatchingArchiveEntry(PrepError):
    """Raised when no archive entry matches the expected tarball suffixes."""

    def __init__(self, archive: Path, patterns: Sequence[str]) -> None:
        self.archive = archive
        self.patterns = list(patterns)
        expected = ", ".join(f"*{pattern}" for pattern in self.patterns)
        super().__init__(f"No ffmpeg tarball found inside {archive} (expected {expected})")


class ModuleDescriptorNotFound(PrepError):
    """Raised when the module descriptor beside a staged override is missing."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Module file not found: {path}")


class InvalidOverrideArchive(PrepError):
    """Raised when a ``.zip`` override cannot be opened as an archive."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"FFmpeg override is not a readable zip archive: {path} ({detail})")


class UnreadableFile(PrepError):
    """Raised when the manifest or module descriptor content cannot be decoded."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Cannot read {path}: {detail}")


class GitCommandFailed(PrepError):
    """Raised when git cannot report the release coordinates."""

    def __init__(self, args: Sequence[str], cwd: Path, detail: str) -> None:
        self.args_run = list(args)
        self.cwd = cwd
        self.detail = detail
        command = " ".join(self.args_run)
        super().__init__(
            f"`{command}` failed in {cwd}: {detail}. Pass --commit/--clone-url outside a git checkout."
        )


class ManifestNotFound(PrepError):
    """Raised when the build manifest has not been generated yet."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Manifest not found: {path}")


class WriteFailure(PrepError):
    """Raised when an input cannot be read or a copy or rewrite cannot be completed."""

    def __init__(self, path: Path, cause: OSError, *, action: str = "write") -> None:
        self.path = path
        self.cause = cause
        self.action = action
        super().__init__(f"Failed to {action} {path}: {cause}")


class MultipleSourceBlocks(PrepError):
    """Raised in strict mode when a manifest declares more than one git source."""

    def __init__(self, path: Path, count: int) -> None:
        self.path = path
        self.count = count
        super().__init__(f"Expected exactly one git source block in {path}, found {count}")


class UnsupportedArchitecture(PrepError):
    """Raised for architecture tags outside the supported set."""

    def __init__(self, arch: str, supported: Sequence[str]) -> None:
        self.arch = arch
        self.supported = tuple(supported)
        options = " or ".join(self.supported)
        super().__init__(f"Unsupported ARCH='{arch}'. Use {options}.")


class InvalidCloneUrl(PrepError):
    """Raised when the clone URL is not an http(s) git URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"CLONE_URL must be an http(s) git URL, got: {url}")


__all__ = [
    "GitCommandFailed",
    "InvalidCloneUrl",
    "InvalidOverrideArchive",
    "ManifestNotFound",
    "MissingOverrideFile",
    "ModuleDescriptorNotFound",
    "MultipleSourceBlocks",
    "NoMatchingArchiveEntry",
    "PrepError",
    "UnreadableFile",
    "UnsupportedArchitecture",
    "WriteFailure",
]
