"""Task input and repository context for prompts."""

import json
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_PATTERNS = ["node_modules", ".git", "dist", "build", "*.log"]

DEFAULT_CORE_FILES = [
    "CLAUDE.md",
    "README.md",
    "package.json",
    "tsconfig.json",
    ".gitignore",
    "Dockerfile",
    "docker-compose.yml",
    "Makefile",
    "Cargo.toml",
    "go.mod",
    "requirements.txt",
    "pyproject.toml",
]

MENTION_EXTENSIONS = "js|ts|jsx|tsx|py|go|rs|java|cpp|c|h|json|yml|yaml|md|txt"

MENTION_PATTERNS = [
    re.compile(rf"`([^`\s]+\.(?:{MENTION_EXTENSIONS}))`"),
    re.compile(
        rf"(?:^|\s)([\w-]+/[\w/.+-]+\.(?:{MENTION_EXTENSIONS}))\b",
        re.MULTILINE,
    ),
    re.compile(rf"@([\w-]+\.(?:{MENTION_EXTENSIONS}))\b"),
]


class IssueContextError(Exception):
    """Raised when no usable task input is available."""


class CommentDetails(BaseModel):
    """Issue comment that triggered the run."""

    body: str
    user: str


class IssueContext(BaseModel):
    """Task description handed to the model."""

    title: str
    description: str
    body: str
    number: int | None = None
    user: str = "local"
    comment: CommentDetails | None = None


def get_issue_context(
    event: dict[str, Any] | None = None,
    prompt_text: str | None = None,
) -> IssueContext:
    """Build the task context from a direct prompt or a GitHub event.

    Args:
        event: Parsed GitHub event payload. Loaded from GITHUB_EVENT_PATH
            when omitted.
        prompt_text: Direct prompt; takes precedence over any event.

    Returns:
        IssueContext for the task.

    Raises:
        IssueContextError: If no event is available or it has no issue.
    """
    if prompt_text:
        return IssueContext(
            title="Direct Prompt",
            description=prompt_text,
            body=prompt_text,
        )

    if event is None:
        event_path = os.environ.get("GITHUB_EVENT_PATH")
        if not event_path:
            raise IssueContextError("No GitHub event data available")
        try:
            event = json.loads(Path(event_path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise IssueContextError(f"Failed to read GitHub event: {e}") from e

    issue = event.get("issue")
    if not issue:
        raise IssueContextError("No issue found in GitHub event")

    body = issue.get("body") or ""
    comment = event.get("comment")
    comment_details = None
    description = body
    if comment:
        comment_details = CommentDetails(
            body=comment.get("body") or "",
            user=(comment.get("user") or {}).get("login", "unknown"),
        )
        description = f"{body}\n\n--- Latest Comment ---\n{comment_details.body}"

    return IssueContext(
        title=issue.get("title", ""),
        description=description,
        body=body,
        number=issue.get("number"),
        user=(issue.get("user") or {}).get("login", "unknown"),
        comment=comment_details,
    )


def _is_excluded(path: str, patterns: list[str]) -> bool:
    for pattern in patterns:
        if pattern in path:
            return True
        if "*" in pattern:
            regex = re.escape(pattern).replace(r"\*", ".*")
            if re.search(regex, path):
                return True
    return False


def list_tracked_files(root: Path) -> list[str]:
    """List git-tracked files below root.

    Raises:
        subprocess.CalledProcessError: If git fails.
    """
    result = subprocess.run(
        ["git", "ls-files"],
        capture_output=True,
        text=True,
        cwd=root,
        check=True,
    )
    return [line for line in result.stdout.splitlines() if line]


def get_repo_context(
    root: Path | None = None,
    max_files: int | None = None,
    exclude_patterns: list[str] | None = None,
    core_files: list[str] | None = None,
    include_git_files: bool = True,
) -> str:
    """Collect core config files and the tracked file list as prompt context.

    Args:
        root: Repository root. Defaults to the cwd.
        max_files: Cap on listed files. Defaults to REPO_CONTEXT_MAX_FILES env var.
        exclude_patterns: Substrings or globs of paths to leave out.
        core_files: Files whose full content is always included.
        include_git_files: Append the git-tracked file list.

    Returns:
        Context text. Missing pieces are skipped.
    """
    root = root or Path.cwd()
    if max_files is None:
        max_files = int(os.environ.get("REPO_CONTEXT_MAX_FILES", "100"))
    if exclude_patterns is None:
        exclude_patterns = DEFAULT_EXCLUDE_PATTERNS
    if core_files is None:
        core_files = DEFAULT_CORE_FILES

    parts: list[str] = []
    for filename in core_files:
        path = root / filename
        if not path.is_file():
            continue
        try:
            parts.append(f"\n=== {filename} ===\n{path.read_text(encoding='utf-8')}\n")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping {filename}: {e}")

    if include_git_files:
        try:
            tracked = [
                f
                for f in list_tracked_files(root)
                if not _is_excluded(f, exclude_patterns)
            ][:max_files]
            parts.append(f"\n=== Git Tracked Files ({len(tracked)}) ===\n")
            parts.append("\n".join(tracked) + "\n")
        except (OSError, subprocess.CalledProcessError) as e:
            logger.warning(f"Could not get git tracked files: {e}")

    return "".join(parts)


def extract_mentioned_files(text: str) -> list[str]:
    """Find file paths mentioned in an issue or prompt.

    Args:
        text: Issue description or prompt.

    Returns:
        Mentioned paths in first-seen order, without duplicates.
    """
    found: dict[str, None] = {}
    for pattern in MENTION_PATTERNS:
        for match in pattern.finditer(text):
            found.setdefault(match.group(1), None)
    return list(found)


def get_mentioned_files_content(
    files: list[str],
    root: Path | None = None,
    max_file_size: int = 10000,
) -> str:
    """Render the content of mentioned files for the prompt.

    Args:
        files: Paths relative to root.
        root: Repository root. Defaults to the cwd.
        max_file_size: Files larger than this many characters are truncated.

    Returns:
        Concatenated file sections; missing files are marked as not found.
    """
    root = root or Path.cwd()
    sections: list[str] = []
    for filename in files:
        path = root / filename
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            sections.append(f"\n=== {filename} (not found) ===\n")
            continue
        if len(content) > max_file_size:
            sections.append(
                f"\n=== {filename} (truncated - file too large) ===\n"
                f"{content[:max_file_size]}\n...[truncated]\n"
            )
        else:
            sections.append(f"\n=== {filename} ===\n{content}\n")
    return "".join(sections)
