"""Line-oriented edits for the generated Flatpak manifest.

The manifest is YAML, but it is never parsed. Edits match literal lines so
that everything outside the targeted lines stays byte-for-byte identical,
including comments, quoting and line endings that a YAML round-trip would lose.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence, Tuple

from ..errors import ManifestNotFound, MultipleSourceBlocks, UnreadableFile, WriteFailure
from ..logging import get_logger
from ..models import CUDA_TOGGLE, FeatureEdit, FeatureToggle, SourceBlock, SourceRewrite

GIT_SOURCE_MARKER = "- type: git"

_OUTSIDE = "outside"
_INSIDE = "inside"
_DONE = "done"


class ManifestPatcher:
    """Applies release coordinates and feature toggles to a manifest in place."""

    def __init__(self) -> None:
        self.logger = get_logger("manifest")

    def patch(
        self,
        manifest_path: Path | str,
        *,
        url: str,
        commit: str,
        enable_acceleration: bool,
        toggle: FeatureToggle = CUDA_TOGGLE,
        strict: bool = False,
    ) -> Tuple[FeatureEdit | None, SourceRewrite]:
        """Run both passes; the feature pass only runs when acceleration is off."""
        feature_edit = None
        if not enable_acceleration:
            feature_edit = self.disable_feature(manifest_path, toggle)
        rewrite = self.rewrite_source(manifest_path, url, commit, strict=strict)
        return feature_edit, rewrite

    def disable_feature(
        self, manifest_path: Path | str, toggle: FeatureToggle = CUDA_TOGGLE
    ) -> FeatureEdit:
        """Drop the feature's module and compiler lines and flip its enable flag off.

        Lines must match the toggle literals exactly (ignoring the line
        terminator). A manifest whose formatting drifted is left untouched.
        """
        path = Path(manifest_path)
        lines = self._read_lines(path)
        edit = FeatureEdit(path=path)

        output: List[str] = []
        for line in lines:
            body, ending = _split_ending(line)
            if body in toggle.removed_lines:
                edit.removed += 1
                continue
            if body == toggle.enable_line:
                edit.flipped += 1
                output.append(f"{toggle.disable_line}{ending}")
                continue
            output.append(line)

        if not edit.changed:
            already_disabled = any(
                _split_ending(line)[0] == toggle.disable_line for line in lines
            )
            if already_disabled:
                self.logger.debug("Feature already disabled in %s", path)
            else:
                self.logger.warning(
                    "No feature toggle lines matched in %s; manifest left unchanged", path
                )
            return edit

        self._write(path, "".join(output))
        self.logger.info(
            "Disabled feature in %s (removed %d line(s), flipped %d flag(s))",
            path,
            edit.removed,
            edit.flipped,
        )
        return edit

    def rewrite_source(
        self,
        manifest_path: Path | str,
        url: str,
        commit: str,
        *,
        strict: bool = False,
    ) -> SourceRewrite:
        """Point the first git source block at ``url`` and ``commit``.

        Later git blocks are reported but never edited. With ``strict`` they
        abort the run before anything is written.
        """
        path = Path(manifest_path)
        lines = self._read_lines(path)
        blocks = find_source_blocks(lines)
        result = SourceRewrite(path=path, blocks=blocks)

        if len(blocks) > 1:
            if strict:
                raise MultipleSourceBlocks(path, len(blocks))
            self.logger.warning(
                "Found %d git source blocks in %s; only the first is rewritten",
                len(blocks),
                path,
            )
        if not blocks:
            self.logger.warning("No git source block found in %s", path)
        elif blocks[0].commit is None:
            self.logger.warning(
                "First git source block in %s has no commit line; only its url is rewritten",
                path,
            )

        original = "".join(lines)
        rewritten = "".join(_rewrite_lines(lines, url, commit))
        if rewritten == original:
            self.logger.debug("Source coordinates already current in %s", path)
            return result

        self._write(path, _ensure_trailing_newline(rewritten))
        result.changed = True
        self.logger.info("Rewrote git source in %s -> %s @ %s", path, url, commit)
        return result

    # ------------------------------------------------------------------
    # Helpers

    @staticmethod
    def _read_lines(path: Path) -> List[str]:
        if not path.is_file():
            raise ManifestNotFound(path)
        try:
            with path.open("r", encoding="utf-8", newline="") as handle:
                return handle.read().splitlines(keepends=True)
        except UnicodeDecodeError as exc:
            detail = f"not valid UTF-8 ({exc.reason} at byte {exc.start})"
            raise UnreadableFile(path, detail) from exc
        except OSError as exc:
            raise WriteFailure(path, exc, action="read") from exc

    @staticmethod
    def _write(path: Path, content: str) -> None:
        try:
            with path.open("w", encoding="utf-8", newline="") as handle:
                handle.write(content)
        except OSError as exc:
            raise WriteFailure(path, exc) from exc


def find_source_blocks(lines: Sequence[str]) -> List[SourceBlock]:
    """Return every git source block with the coordinates it currently declares."""
    blocks: List[SourceBlock] = []
    current: SourceBlock | None = None
    for index, line in enumerate(lines):
        body, _ = _split_ending(line)
        stripped = body.strip()
        if stripped == GIT_SOURCE_MARKER:
            current = SourceBlock(start_line=index)
            blocks.append(current)
            continue
        if current is None:
            continue
        if stripped.startswith("url:") and current.url is None:
            current.indent = _indent_of(body)
            current.url = _field_value(stripped, "url:")
        elif stripped.startswith("commit:"):
            current.commit = _field_value(stripped, "commit:")
            current = None
    return blocks


def _rewrite_lines(lines: Sequence[str], url: str, commit: str) -> List[str]:
    state = _OUTSIDE
    output: List[str] = []
    for line in lines:
        body, ending = _split_ending(line)
        stripped = body.strip()
        if stripped == GIT_SOURCE_MARKER:
            # A second marker closes an unterminated first block.
            state = _INSIDE if state == _OUTSIDE else _DONE
        elif state == _INSIDE and stripped.startswith("url:"):
            line = f'{_indent_of(body)}url: "{url}"{ending}'
        elif state == _INSIDE and stripped.startswith("commit:"):
            line = f'{_indent_of(body)}commit: "{commit}"{ending}'
            state = _DONE
        output.append(line)
    return output


def _split_ending(line: str) -> Tuple[str, str]:
    for ending in ("\r\n", "\n", "\r"):
        if line.endswith(ending):
            return line[: -len(ending)], ending
    return line, ""


def _indent_of(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _field_value(stripped: str, key: str) -> str:
    value = stripped[len(key):].strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def _ensure_trailing_newline(text: str) -> str:
    if text and not text.endswith(("\n", "\r")):
        return text + "\n"
    return text


__all__ = ["GIT_SOURCE_MARKER", "ManifestPatcher", "find_source_blocks"]
