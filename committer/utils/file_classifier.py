"""Placeholder and unsafe-path detection for parsed files."""

import logging
import posixpath
import re
from dataclasses import dataclass

from committer.utils.file_parser import ResolvedFile

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 10
MAX_PATH_LENGTH = 255

GENERIC_PATH_PATTERNS = [
    re.compile(r"path/to/"),
    re.compile(r"\.ext$"),
    re.compile(r"(?:^|/)(?:example|sample|template)/"),
]

PLACEHOLDER_CONTENT_PATTERNS = [
    re.compile(r"^\[.*\]$"),
    re.compile(r"^<.*>$"),
    re.compile(r"^(?:TODO|FIXME):", re.IGNORECASE),
    re.compile(r"placeholder", re.IGNORECASE),
]

RESERVED_PREFIXES = ("/etc/", "/proc/", "/sys/", "/dev/", "/root/", "/boot/")


@dataclass(frozen=True)
class Classification:
    """Verdict for a single parsed file."""

    accepted: bool
    reason: str | None = None


def is_generic_path(name: str) -> bool:
    """Check whether a filename looks like a template placeholder."""
    return any(pattern.search(name) for pattern in GENERIC_PATH_PATTERNS)


def is_placeholder_content(content: str) -> bool:
    """Check whether file content looks like a placeholder.

    Args:
        content: File content.

    Returns:
        True for bracketed stubs, TODO/FIXME stubs, the word "placeholder",
        or content shorter than MIN_CONTENT_LENGTH after stripping.
    """
    trimmed = content.strip()
    if len(trimmed) < MIN_CONTENT_LENGTH:
        return True
    return any(pattern.search(trimmed) for pattern in PLACEHOLDER_CONTENT_PATTERNS)


def is_dangerous_path(name: str) -> bool:
    """Check whether a filename is unsafe to write.

    Args:
        name: Filename as emitted by the model.

    Returns:
        True for traversal segments, null bytes, reserved system
        directories, or names longer than MAX_PATH_LENGTH.
    """
    if "\0" in name or len(name) > MAX_PATH_LENGTH:
        return True
    if ".." in re.split(r"[\\/]", name):
        return True
    normalized = posixpath.normpath(name.replace("\\", "/"))
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return (normalized + "/").startswith(RESERVED_PREFIXES)


def classify_file(file: ResolvedFile) -> Classification:
    """Decide whether a parsed file should be materialized.

    Args:
        file: The resolved file.

    Returns:
        Classification with the first rejection reason, if any.
    """
    if is_dangerous_path(file.name):
        return Classification(accepted=False, reason="unsafe path")
    if is_generic_path(file.name):
        return Classification(accepted=False, reason="generic placeholder path")
    if is_placeholder_content(file.content):
        return Classification(accepted=False, reason="placeholder content")
    return Classification(accepted=True)


def filter_files(
    files: list[ResolvedFile],
) -> tuple[list[ResolvedFile], list[tuple[ResolvedFile, str]]]:
    """Split files into accepted and rejected.

    Args:
        files: Resolved files in parse order.

    Returns:
        Tuple of (accepted files, (rejected file, reason) pairs).
    """
    accepted: list[ResolvedFile] = []
    rejected: list[tuple[ResolvedFile, str]] = []
    for file in files:
        verdict = classify_file(file)
        if verdict.accepted:
            accepted.append(file)
        else:
            rejected.append((file, verdict.reason or "rejected"))
    return accepted, rejected
