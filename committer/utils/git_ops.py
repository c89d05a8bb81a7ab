"""Local git operations for committing generated files."""

import logging
import re
import subprocess
from pathlib import Path

from committer.utils.context import IssueContext

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Raised when a git command fails."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


def generate_branch_name(issue: IssueContext, max_slug_length: int = 40) -> str:
    """Build a branch name for the task.

    Args:
        issue: The task context.
        max_slug_length: Maximum length of the title slug.

    Returns:
        ai/issue-<number>-<slug> for issues, ai/prompt-<slug> otherwise.
    """
    source = issue.title if issue.number is not None else issue.description
    slug = re.sub(r"[^a-z0-9]+", "-", source.lower()).strip("-")
    slug = slug[:max_slug_length].rstrip("-") or "task"
    if issue.number is not None:
        return f"ai/issue-{issue.number}-{slug}"
    return f"ai/prompt-{slug}"


class GitRepository:
    """Thin wrapper around the git CLI for one working tree."""

    def __init__(self, root: Path | None = None) -> None:
        """Initialize repository wrapper.

        Args:
            root: Working tree root. Defaults to the cwd.
        """
        self._root = root or Path.cwd()

    @property
    def root(self) -> Path:
        return self._root

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            cwd=self._root,
        )
        if check and result.returncode != 0:
            stderr = result.stderr.strip()
            raise GitError(f"git {args[0]} failed: {stderr}", stderr=stderr)
        return result

    def is_repository(self) -> bool:
        """Check whether the root is inside a git working tree."""
        try:
            return self._git("rev-parse", "--git-dir", check=False).returncode == 0
        except FileNotFoundError:
            return False

    def current_branch(self) -> str:
        """Return the checked-out branch name."""
        return self._git("rev-parse", "--abbrev-ref", "HEAD").stdout.strip()

    def create_branch(self, branch_name: str) -> str:
        """Create a branch, or switch to it if it already exists.

        Args:
            branch_name: Branch to work on.

        Returns:
            The branch name.
        """
        if self.current_branch() == branch_name:
            logger.info(f"Already on branch: {branch_name}")
            return branch_name

        exists = self._git(
            "rev-parse", "--verify", "--quiet", f"refs/heads/{branch_name}", check=False
        )
        if exists.returncode == 0:
            self._git("checkout", branch_name)
            logger.info(f"Switched to existing branch: {branch_name}")
        else:
            self._git("checkout", "-b", branch_name)
            logger.info(f"Created branch: {branch_name}")
        return branch_name

    def commit_files(self, paths: list[str], message: str) -> str | None:
        """Stage the given paths and commit them.

        Args:
            paths: Paths relative to the root.
            message: Commit message.

        Returns:
            The commit SHA, or None if nothing was staged.
        """
        if not paths:
            logger.info("No files to commit")
            return None

        self._git("add", "--", *paths)
        staged = self._git("diff", "--cached", "--quiet", check=False)
        if staged.returncode == 0:
            logger.info("No changes to commit")
            return None

        self._git("commit", "-m", message)
        sha = self._git("rev-parse", "HEAD").stdout.strip()
        logger.info(f"Created commit {sha[:7]} with {len(paths)} files")
        return sha

    def push(self, branch_name: str, remote: str = "origin") -> None:
        """Push a branch and set its upstream."""
        self._git("push", "-u", remote, branch_name)
        logger.info(f"Pushed branch: {branch_name}")
