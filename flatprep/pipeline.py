"""Pipeline orchestration for a release preparation run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import SUPPORTED_ARCHES, PrepConfig
from .errors import ManifestNotFound, UnsupportedArchitecture
from .git.coordinates import CoordinateResolver, SourceCoordinates
from .logging import get_logger
from .manifest.patcher import ManifestPatcher
from .models import FeatureEdit, SourceRewrite, StagedSource
from .override.stager import SourceOverrideStager, StagingLayout


@dataclass
class PrepOutcome:
    """What a preparation run changed."""

    coordinates: SourceCoordinates
    source_rewrite: SourceRewrite
    feature_edit: Optional[FeatureEdit] = None
    staged: Optional[StagedSource] = None


class PrepPipeline:
    """Patches the generated manifest, then stages an FFmpeg override if one is configured."""

    def __init__(
        self,
        resolver: CoordinateResolver | None = None,
        patcher: ManifestPatcher | None = None,
        stager: SourceOverrideStager | None = None,
    ) -> None:
        self.resolver = resolver or CoordinateResolver()
        self.patcher = patcher or ManifestPatcher()
        self._stager = stager
        self.logger = get_logger("pipeline")

    def run(self, config: PrepConfig) -> PrepOutcome:
        if config.arch not in SUPPORTED_ARCHES:
            raise UnsupportedArchitecture(config.arch, SUPPORTED_ARCHES)

        self.logger.info("Preparing %s manifest in %s", config.arch, config.root)
        coordinates = self.resolve_coordinates(config)

        manifest_path = config.manifest_path
        if not manifest_path.is_file():
            raise ManifestNotFound(manifest_path)

        feature_edit, rewrite = self.patcher.patch(
            manifest_path,
            url=coordinates.clone_url,
            commit=coordinates.commit,
            enable_acceleration=config.enable_cuda,
            strict=config.strict_sources,
        )
        self.logger.info("Using source repository: %s", coordinates.clone_url)
        self.logger.info("Using source commit: %s", coordinates.commit)

        staged = None
        if config.ffmpeg_override is not None:
            staged = self.stage_override(config)
        else:
            self.logger.debug("No FFmpeg override configured; keeping upstream module source")

        return PrepOutcome(
            coordinates=coordinates,
            source_rewrite=rewrite,
            feature_edit=feature_edit,
            staged=staged,
        )

    def resolve_coordinates(self, config: PrepConfig) -> SourceCoordinates:
        source = config.source
        return self.resolver.resolve(
            config.root,
            clone_url=source.clone_url,
            commit=source.commit,
            version=source.version,
            branch=source.branch,
        )

    def stage_override(self, config: PrepConfig) -> Optional[StagedSource]:
        """Stage the configured override; a run without one is a no-op.

        Also callable on its own (without ``run``), so it repeats the
        architecture check instead of relying on ``run`` having done it.
        """
        if config.ffmpeg_override is None:
            return None
        if config.arch not in SUPPORTED_ARCHES:
            raise UnsupportedArchitecture(config.arch, SUPPORTED_ARCHES)
        stager = self._stager or SourceOverrideStager(StagingLayout(config.root))
        return stager.stage(config.ffmpeg_override, config.arch)


__all__ = ["PrepOutcome", "PrepPipeline"]
