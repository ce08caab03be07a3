"""Version-control queries backed by the git CLI.

Every query degrades to an empty value (None, '', 0, False) when git is
missing, the directory is not a repository, or the command fails.
"""

import logging
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ..core.freshness import parse_timestamp

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 10


class GitClient:
    """Runs git queries against one working directory."""

    def __init__(self, cwd: Optional[Union[str, Path]] = None):
        self.cwd = Path(cwd) if cwd else None

    def _run(self, *args: str) -> str:
        """Run a git command and return stripped stdout, or '' on any failure."""
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT_SECONDS,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug("git %s failed: %s", " ".join(args), e)
            return ""
        if result.returncode != 0:
            logger.debug("git %s exited %d: %s", " ".join(args), result.returncode, result.stderr.strip())
            return ""
        return result.stdout.strip()

    def is_repo(self) -> bool:
        return self._run("rev-parse", "--is-inside-work-tree") == "true"

    def current_branch(self) -> str:
        return self._run("branch", "--show-current")

    def root(self) -> str:
        return self._run("rev-parse", "--show-toplevel")

    def file_last_modified(self, file_path: Union[str, Path]) -> Optional[datetime]:
        """Commit date of the last commit touching the file."""
        output = self._run("log", "-1", "--format=%cI", "--", str(file_path))
        return parse_timestamp(output) if output else None

    def commit_count_after(self, file_path: Union[str, Path], since: str) -> int:
        """Number of commits touching the file after the given date."""
        output = self._run("log", "--oneline", f"--after={since}", "--", str(file_path))
        return len(output.splitlines()) if output else 0
