"""Git history reader backed by the git command-line tool."""

import logging
import subprocess
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

logger = logging.getLogger(__name__)

LOG_PRETTY_FORMAT = "%H%x1f%ct%x1f%an%x1f%ae%x1f%s"


class SubprocessGitLogReader:
    """Runs ``git log`` and ``git check-ignore`` in a local repository."""

    def __init__(self, git_executable: str = "git", clock: Callable[[], float] = time.time):
        self.git_executable = git_executable
        self.clock = clock

    def read_git_log(self, root: str, window_days: int) -> str:
        """
        Return ``git log --numstat`` output for the last window_days days.

        Raises:
            OSError: If git cannot be started
            subprocess.CalledProcessError: If git exits with an error
        """
        days = max(1, int(window_days))
        since = datetime.fromtimestamp(self.clock(), tz=timezone.utc) - timedelta(days=days)
        args = [
            self.git_executable,
            "log",
            f"--since={since.date().isoformat()}",
            "--no-merges",
            "--date-order",
            "--numstat",
            f"--pretty=format:{LOG_PRETTY_FORMAT}",
        ]
        try:
            result = subprocess.run(
                args,
                cwd=root,
                check=True,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except (OSError, subprocess.CalledProcessError) as e:
            logger.error("git log failed in %s: %s", root, e)
            raise
        return result.stdout or ""

    def filter_ignored_paths(self, root: str, paths: list[str]) -> list[str]:
        """
        Return the paths git considers ignored.

        Raises:
            OSError: If git cannot be started
            subprocess.CalledProcessError: If git check-ignore reports an error
        """
        if not paths:
            return []
        result = subprocess.run(
            [self.git_executable, "check-ignore", "--stdin"],
            cwd=root,
            input="\n".join(paths),
            check=False,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        # exit status 1 means no path is ignored
        if result.returncode not in (0, 1):
            raise subprocess.CalledProcessError(result.returncode, result.args, result.stdout, result.stderr)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]
