"""Configuration loading for flatprep (.flatprep.yml plus environment overrides)."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

CONFIG_FILENAME = ".flatprep.yml"
APP_ID = "dev.lizardbyte.app.Sunshine"
DEFAULT_MANIFEST = f"build/{APP_ID}.yml"
SUPPORTED_ARCHES = ("x86_64", "aarch64")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class SourceConfig:
    """Explicit release coordinates; unset fields are read from git."""

    clone_url: Optional[str] = None
    commit: Optional[str] = None
    version: Optional[str] = None
    branch: Optional[str] = None


@dataclass
class PrepConfig:
    """Represents the settings for one preparation run."""

    root: Path
    arch: str = "x86_64"
    enable_cuda: bool = False
    manifest: Path = Path(DEFAULT_MANIFEST)
    ffmpeg_override: Optional[Path] = None
    strict_sources: bool = False
    source: SourceConfig = field(default_factory=SourceConfig)
    log_file: Optional[Path] = None

    @property
    def manifest_path(self) -> Path:
        return self.manifest if self.manifest.is_absolute() else self.root / self.manifest


def load_config(
    config_path: Path, *, environ: Mapping[str, str] | None = None
) -> PrepConfig:
    """Load configuration from disk, then apply environment overrides."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()
    config = PrepConfig(root=root)

    if config_file.exists():
        data = _read_config(config_file)
        if not isinstance(data, dict):
            raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")
        _apply_file(config, data)

    apply_environment(config, os.environ if environ is None else environ)
    return config


def apply_environment(config: PrepConfig, environ: Mapping[str, str]) -> PrepConfig:
    """Overlay the build script's environment variables onto ``config``."""
    arch = _as_str(environ.get("ARCH"))
    if arch:
        config.arch = arch

    enable_cuda = _as_bool(environ.get("ENABLE_CUDA"))
    if enable_cuda is not None:
        config.enable_cuda = enable_cuda

    override = _as_str(environ.get("FFMPEG_TARBALL_OVERRIDE"))
    if override:
        config.ffmpeg_override = _as_path(config.root, override)

    for attr, variable in (
        ("clone_url", "CLONE_URL"),
        ("commit", "RELEASE_COMMIT"),
        ("version", "RELEASE_VERSION"),
        ("branch", "BRANCH"),
    ):
        value = _as_str(environ.get(variable))
        if value:
            setattr(config.source, attr, value)
    return config


def _apply_file(config: PrepConfig, data: Dict[str, Any]) -> None:
    arch = _as_str(data.get("arch"))
    if arch:
        config.arch = arch

    enable_cuda = _as_bool(data.get("enable_cuda"))
    if enable_cuda is not None:
        config.enable_cuda = enable_cuda

    strict = _as_bool(data.get("strict_sources"))
    if strict is not None:
        config.strict_sources = strict

    manifest = _as_str(data.get("manifest"))
    if manifest:
        config.manifest = Path(manifest)

    override = _as_str(data.get("ffmpeg_override"))
    if override:
        config.ffmpeg_override = _as_path(config.root, override)

    log_file = _as_str(data.get("log_file"))
    if log_file:
        config.log_file = _as_path(config.root, log_file)

    source_data = data.get("source")
    if source_data is None:
        return
    if not isinstance(source_data, dict):
        raise ConfigError("'source' must be a mapping of clone_url/commit/version/branch")
    config.source = SourceConfig(
        clone_url=_as_str(source_data.get("clone_url")),
        commit=_as_str(source_data.get("commit")),
        version=_as_str(source_data.get("version")),
        branch=_as_str(source_data.get("branch")),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_path(root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else root / path


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int, float)):
        text = str(value).strip()
        return text or None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "on", "1"}:
            return True
        if lowered in {"false", "no", "off", "0"}:
            return False
    return None


__all__ = [
    "APP_ID",
    "ConfigError",
    "DEFAULT_MANIFEST",
    "PrepConfig",
    "SUPPORTED_ARCHES",
    "SourceConfig",
    "apply_environment",
    "load_config",
]
