"""Resolve the clone URL and revision a release manifest should build from."""

from __future__ import annotations

from dataclasses import dataclass
import re
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..errors import GitCommandFailed, InvalidCloneUrl

DEFAULT_CLONE_URL = "https://github.com/LizardByte/Sunshine.git"

_SSH_GITHUB = re.compile(r"^git@github\.com:(.+)$")


@dataclass
class SourceCoordinates:
    """Where and at which revision the build fetches the application source."""

    clone_url: str
    commit: str
    version: str
    branch: Optional[str] = None


def normalise_clone_url(url: str) -> str:
    """Rewrite GitHub SSH remotes to their https form."""
    match = _SSH_GITHUB.match(url)
    if match:
        return f"https://github.com/{match.group(1)}"
    return url


def validate_clone_url(url: str) -> str:
    if url.startswith("https://") or url.startswith("http://"):
        return url
    raise InvalidCloneUrl(url)


class CoordinateResolver:
    """Reads release coordinates from a git checkout, honouring explicit overrides."""

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner

    def resolve(
        self,
        repo_path: Path,
        *,
        clone_url: str | None = None,
        commit: str | None = None,
        version: str | None = None,
        branch: str | None = None,
    ) -> SourceCoordinates:
        url = validate_clone_url(clone_url or self.default_clone_url(repo_path))
        if commit:
            # Explicit coordinates must not require a git checkout.
            return SourceCoordinates(
                clone_url=url, commit=commit, version=version or commit[:8], branch=branch
            )
        return SourceCoordinates(
            clone_url=url,
            commit=self._git(repo_path, "rev-parse", "HEAD"),
            version=version or self._git(repo_path, "rev-parse", "--short=8", "HEAD"),
            branch=branch or self._git(repo_path, "rev-parse", "--abbrev-ref", "HEAD"),
        )

    def default_clone_url(self, repo_path: Path) -> str:
        """Return the origin remote as an https URL, or the upstream default."""
        try:
            origin = self._git(repo_path, "config", "--get", "remote.origin.url")
        except GitCommandFailed:
            # git exits 1 when the key is unset.
            origin = ""
        if not origin:
            return DEFAULT_CLONE_URL
        return normalise_clone_url(origin)

    # ------------------------------------------------------------------
    # Helpers

    def _git(self, repo_path: Path, *args: str) -> str:
        command = ["git", *args]
        try:
            output = self._runner(command, cwd=repo_path, capture_output=True)
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.strip() if isinstance(exc.stderr, str) else ""
            detail = stderr or f"exit status {exc.returncode}"
            raise GitCommandFailed(command, repo_path, detail) from exc
        except FileNotFoundError as exc:
            raise GitCommandFailed(command, repo_path, "git executable not found") from exc
        return output.strip()

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=capture_output,
        )
        if capture_output:
            return completed.stdout
        return ""


__all__ = [
    "CoordinateResolver",
    "DEFAULT_CLONE_URL",
    "SourceCoordinates",
    "normalise_clone_url",
    "validate_clone_url",
]
