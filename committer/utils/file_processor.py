"""Apply parsed model output to the working tree."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from committer.utils.file_classifier import filter_files
from committer.utils.file_parser import ResolvedFile, parse_files, parse_files_lenient

logger = logging.getLogger(__name__)


@dataclass
class ProcessingOptions:
    """How a model response is turned into files."""

    materialize: bool = True
    apply_classifier: bool = True
    allow_unterminated: bool = False


@dataclass
class ProcessingResult:
    """Outcome of processing one model response."""

    files: list[ResolvedFile] = field(default_factory=list)
    rejected: list[tuple[str, str]] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        """Names of all accepted files."""
        return [f.name for f in self.files]


class FileWriter:
    """Write resolved files below a root directory."""

    def __init__(self, root: Path | None = None, create_directories: bool = True):
        """Initialize file writer.

        Args:
            root: Directory files are written into. Defaults to the cwd.
            create_directories: Create missing parent directories.
        """
        self._root = (root or Path.cwd()).resolve()
        self._create_directories = create_directories

    @property
    def root(self) -> Path:
        return self._root

    def target_path(self, name: str) -> Path:
        """Resolve a filename below the root.

        Raises:
            ValueError: If the name resolves outside the root.
        """
        target = (self._root / name.lstrip("/")).resolve()
        if not target.is_relative_to(self._root):
            raise ValueError(f"Path escapes working directory: {name}")
        return target

    def write(self, file: ResolvedFile) -> Path:
        """Write a single file.

        Raises:
            ValueError: If the name resolves outside the root.
            OSError: If the file cannot be written.
        """
        target = self.target_path(file.name)
        if self._create_directories:
            target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(file.content, encoding="utf-8")
        return target

    def write_files(self, files: list[ResolvedFile]) -> tuple[list[str], list[str]]:
        """Write files, continuing past individual failures.

        Args:
            files: Files to write.

        Returns:
            Tuple of (written paths relative to the root, failed names).
        """
        written: list[str] = []
        failed: list[str] = []
        for file in files:
            try:
                target = self.write(file)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to write {file.name}: {e}")
                failed.append(file.name)
                continue
            logger.info(f"Created: {file.name} ({len(file.content)} chars)")
            written.append(target.relative_to(self._root).as_posix())
        return written, failed


def process_response(
    response: str,
    options: ProcessingOptions | None = None,
    writer: FileWriter | None = None,
) -> ProcessingResult:
    """Parse, classify, and optionally write the files in a model response.

    Args:
        response: Raw model output.
        options: Processing options. Defaults to ProcessingOptions().
        writer: File writer used when materializing.

    Returns:
        ProcessingResult. An empty result is not an error.
    """
    options = options or ProcessingOptions()

    if options.allow_unterminated:
        files = parse_files_lenient(response)
    else:
        files = parse_files(response)

    result = ProcessingResult(files=files)

    if options.apply_classifier:
        accepted, rejected = filter_files(files)
        for file, reason in rejected:
            logger.warning(f"Rejected {file.name!r}: {reason}")
        result.files = accepted
        result.rejected = [(file.name, reason) for file, reason in rejected]

    for file in result.files:
        logger.info(f"Accepted {file.name!r} ({len(file.content)} chars)")

    if not result.files:
        logger.warning("No files found in LLM response")
        return result

    if not options.materialize:
        logger.info(f"Dry run: would write {len(result.files)} files")
        return result

    writer = writer or FileWriter()
    result.written, result.failed = writer.write_files(result.files)
    logger.info(f"Wrote {len(result.written)}/{len(result.files)} files")
    return result
