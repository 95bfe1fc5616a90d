"""Narrow interface to the host version control tool."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from .errors import VersionControlError

log = logging.getLogger("lfsync/vcs")


class VersionControl(Protocol):
    """
    What the sync engine needs from the version control tool.

    Methods:
        stage: mark the given top-level relative paths as staged.
        staged_files: return the top-level relative paths currently staged.
    """

    def stage(self, paths: Sequence[str]) -> None: ...

    def staged_files(self) -> list[str]: ...


class GitVersionControl:
    """VersionControl implementation invoking the `git` executable."""

    def __init__(self, root: str | Path, *, git: str = "git") -> None:
        self.root = Path(root)
        self.git = git

    def _run(self, *args: str) -> bytes:
        argv = [self.git, "-C", str(self.root), *args]
        try:
            result = subprocess.run(argv, capture_output=True, check=True)
        except FileNotFoundError as exc:
            raise VersionControlError(f"cannot execute {self.git}: {exc}") from exc
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode(errors="replace").strip()
            raise VersionControlError(f"{' '.join(argv[3:])} failed: {stderr}") from exc
        return result.stdout

    def stage(self, paths: Sequence[str]) -> None:
        if not paths:
            return
        log.debug("staging %d path(s)", len(paths))
        self._run("add", "--", *paths)

    def staged_files(self) -> list[str]:
        output = self._run("diff", "--cached", "--name-only", "-z", "--diff-filter=ACMR")
        return [name for name in output.decode().split("\0") if name]

    def toplevel(self) -> Path:
        """Return the top-level directory of the repository containing root."""
        output = self._run("rev-parse", "--show-toplevel")
        return Path(output.decode().strip())
