"""CLI entrypoints for flatprep commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import SUPPORTED_ARCHES, ConfigError, PrepConfig, load_config
from .errors import PrepError
from .logging import configure_logging
from .manifest.patcher import ManifestPatcher
from .pipeline import PrepPipeline
from .override.stager import SourceOverrideStager, StagingLayout


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_cuda_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--enable-cuda",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Keep the CUDA module and flags in the manifest (default: strip them).",
    )


def _add_strict_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--strict-sources",
        action="store_true",
        default=None,
        help="Fail when the manifest declares more than one git source block.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flatprep",
        description="Prepare a Flatpak manifest for a reproducible release build.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    prepare_parser = subparsers.add_parser(
        "prepare",
        help="Patch the generated manifest and stage an FFmpeg override if configured.",
    )
    _add_verbose_option(prepare_parser, suppress_default=True)
    prepare_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    prepare_parser.add_argument("--arch", choices=SUPPORTED_ARCHES, help="Target architecture.")
    _add_cuda_option(prepare_parser)
    _add_strict_option(prepare_parser)
    prepare_parser.add_argument(
        "--manifest",
        help="Manifest path relative to the repository root.",
    )
    prepare_parser.add_argument(
        "--ffmpeg-override",
        help="Prebuilt FFmpeg tarball or zip of tarballs to use instead of building FFmpeg.",
    )
    prepare_parser.add_argument("--clone-url", help="Git URL written into the manifest.")
    prepare_parser.add_argument("--commit", help="Commit written into the manifest.")
    prepare_parser.add_argument("--log-file", help="Also write logs to this file.")

    patch_parser = subparsers.add_parser(
        "patch-manifest",
        help="Rewrite the git source (and optionally strip CUDA) in a manifest.",
    )
    _add_verbose_option(patch_parser, suppress_default=True)
    patch_parser.add_argument("manifest", help="Path to the manifest file.")
    patch_parser.add_argument("--clone-url", required=True, help="Git URL to write.")
    patch_parser.add_argument("--commit", required=True, help="Commit to write.")
    _add_cuda_option(patch_parser)
    _add_strict_option(patch_parser)

    stage_parser = subparsers.add_parser(
        "stage-override",
        help="Stage a prebuilt FFmpeg tarball as the ffmpeg module source.",
    )
    _add_verbose_option(stage_parser, suppress_default=True)
    stage_parser.add_argument("override", help="Tarball or zip archive to stage.")
    stage_parser.add_argument(
        "--root",
        default=".",
        help="Repository root containing the build directory (defaults to current directory).",
    )
    stage_parser.add_argument(
        "--arch", choices=SUPPORTED_ARCHES, default="x86_64", help="Target architecture."
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for flatprep commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logger = configure_logging(verbose=bool(args.verbose))

    try:
        if args.command == "prepare":
            config = _config_from_args(args)
            if config.log_file is not None:
                logger = configure_logging(verbose=bool(args.verbose), log_file=config.log_file)
            outcome = PrepPipeline().run(config)
            print(f"Manifest prepared at {_relativize(config.manifest_path)}")
            if outcome.staged is not None:
                print(f"FFmpeg override staged at {_relativize(outcome.staged.repo_copy)}")
        elif args.command == "patch-manifest":
            ManifestPatcher().patch(
                args.manifest,
                url=args.clone_url,
                commit=args.commit,
                enable_acceleration=bool(args.enable_cuda),
                strict=bool(args.strict_sources),
            )
            print(f"Manifest patched at {args.manifest}")
        elif args.command == "stage-override":
            layout = StagingLayout(Path(args.root).expanduser().resolve())
            staged = SourceOverrideStager(layout).stage(args.override, args.arch)
            print(f"FFmpeg override staged at {_relativize(staged.repo_copy)}")
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except (PrepError, ConfigError) as exc:
        logger.debug("Run aborted", exc_info=True)
        parser.exit(1, f"flatprep {args.command} failed: {exc}\n")


def _config_from_args(args: argparse.Namespace) -> PrepConfig:
    """Load .flatprep.yml and the environment, then apply explicit CLI flags."""
    config = load_config(Path(args.path))
    if args.arch:
        config.arch = args.arch
    if args.enable_cuda is not None:
        config.enable_cuda = args.enable_cuda
    if args.strict_sources is not None:
        config.strict_sources = args.strict_sources
    if args.manifest:
        config.manifest = Path(args.manifest)
    if args.ffmpeg_override:
        config.ffmpeg_override = Path(args.ffmpeg_override).expanduser().resolve()
    if args.clone_url:
        config.source.clone_url = args.clone_url
    if args.commit:
        config.source.commit = args.commit
    if args.log_file:
        config.log_file = Path(args.log_file).expanduser().resolve()
    return config


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
