"""Core data models shared across flatprep components."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

ARCHIVE = "archive"
SINGLE_FILE = "single-file"


@dataclass(frozen=True)
class FeatureToggle:
    """Literal manifest lines that switch an optional feature on."""

    module_line: str
    compiler_flag_line: str
    enable_line: str
    disable_line: str

    @property
    def removed_lines(self) -> tuple[str, str]:
        return (self.module_line, self.compiler_flag_line)


CUDA_TOGGLE = FeatureToggle(
    module_line='  - "modules/cuda.json"',
    compiler_flag_line="      - -DCMAKE_CUDA_COMPILER=/app/cuda/bin/nvcc",
    enable_line="      - -DSUNSHINE_ENABLE_CUDA=ON",
    disable_line="      - -DSUNSHINE_ENABLE_CUDA=OFF",
)


@dataclass
class FeatureEdit:
    """Outcome of stripping a feature toggle from a manifest."""

    path: Path
    removed: int = 0
    flipped: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.removed or self.flipped)


@dataclass
class SourceBlock:
    """A git source declaration located in a manifest."""

    start_line: int
    indent: str = ""
    url: Optional[str] = None
    commit: Optional[str] = None


@dataclass
class SourceRewrite:
    """Outcome of rewriting the manifest's git source coordinates."""

    path: Path
    blocks: List[SourceBlock] = field(default_factory=list)
    changed: bool = False

    @property
    def rewritten(self) -> Optional[SourceBlock]:
        return self.blocks[0] if self.blocks else None

    @property
    def skipped(self) -> int:
        return max(len(self.blocks) - 1, 0)


@dataclass
class OverrideArtifact:
    """Externally supplied FFmpeg payload, either a tarball or a zip of tarballs."""

    path: Path
    kind: str
    entries: List[str] = field(default_factory=list)

    @property
    def is_archive(self) -> bool:
        return self.kind == ARCHIVE


@dataclass
class StagedSource:
    """Paths written while staging an override."""

    repo_copy: Path
    build_copy: Path
    module_copy: Path
    descriptor: Path
    source_path: str
    selected_entry: Optional[str] = None

    @property
    def copies(self) -> tuple[Path, Path, Path]:
        return (self.repo_copy, self.build_copy, self.module_copy)
