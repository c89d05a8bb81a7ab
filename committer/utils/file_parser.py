"""Parser for === FILENAME: === / === END: === delimited file blocks."""

import logging
import re
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

# Marker lines must match the whole line; the name is captured lazily so the
# closing "===" is not swallowed into it.
MARKER_PATTERN = re.compile(
    r"^===[ \t]*(?P<tag>FILENAME|END):(?P<name>.*?)===[ \t]*\r?$",
    re.MULTILINE,
)


class MarkerKind(Enum):
    """Kind of delimiter line."""

    START = "FILENAME"
    END = "END"


@dataclass(frozen=True)
class Marker:
    """A delimiter line found in model output."""

    kind: MarkerKind
    name: str
    position: int
    span_end: int


@dataclass(frozen=True)
class CandidateBlock:
    """A matched Start/End pair before outermost-wins filtering."""

    name: str
    content_start: int
    content_end: int
    nesting_depth: int


@dataclass(frozen=True)
class ResolvedFile:
    """A parsed file ready for classification or materialization."""

    name: str
    content: str


def scan_markers(text: str) -> list[Marker]:
    """Find all start and end marker lines in text.

    Args:
        text: Raw model output.

    Returns:
        Markers ordered by position. Lines with an empty name are skipped.
    """
    markers: list[Marker] = []
    for match in MARKER_PATTERN.finditer(text):
        name = match.group("name").strip()
        if not name:
            continue
        markers.append(
            Marker(
                kind=MarkerKind(match.group("tag")),
                name=name,
                position=match.start(),
                span_end=match.start() + len(match.group(0).rstrip("\r")),
            )
        )
    return markers


def _pair_markers(markers: list[Marker]) -> tuple[dict[int, int], list[int]]:
    """Pair start markers with end markers by name.

    Each END closes the nearest still-open START with the same name. Open
    starts are kept per name, so every marker is handled in constant time.

    Returns:
        Tuple of (start index -> end index, start indexes still open).
    """
    pairs: dict[int, int] = {}
    open_by_name: dict[str, list[int]] = {}

    for index, marker in enumerate(markers):
        if marker.kind is MarkerKind.START:
            open_by_name.setdefault(marker.name, []).append(index)
            continue

        open_starts = open_by_name.get(marker.name)
        if open_starts:
            pairs[open_starts.pop()] = index
        else:
            logger.debug(
                f"Ignoring orphaned END marker for {marker.name!r} "
                f"at offset {marker.position}"
            )

    still_open = [
        index
        for index, marker in enumerate(markers)
        if marker.kind is MarkerKind.START and index not in pairs
    ]
    return pairs, still_open


def _build_candidates(
    markers: list[Marker], pairs: dict[int, int]
) -> list[CandidateBlock]:
    closing = {end: start for start, end in pairs.items()}

    depths: dict[int, int] = {}
    open_blocks = 0
    candidates: list[CandidateBlock] = []

    for index, marker in enumerate(markers):
        if index in pairs:
            depths[index] = open_blocks
            open_blocks += 1
        elif index in closing:
            open_blocks -= 1
            start = markers[closing[index]]
            candidates.append(
                CandidateBlock(
                    name=start.name,
                    content_start=start.span_end,
                    content_end=marker.position,
                    nesting_depth=depths[closing[index]],
                )
            )

    return candidates


def find_candidate_blocks(markers: list[Marker]) -> list[CandidateBlock]:
    """Match markers into candidate blocks tagged with their nesting depth.

    A block's depth counts the matched blocks that were still open when its
    start marker was seen. Starts that never close do not count.

    Args:
        markers: Markers in positional order.

    Returns:
        Candidate blocks in the order their end markers appear.
    """
    pairs, _ = _pair_markers(markers)
    return _build_candidates(markers, pairs)


def resolve_blocks(
    text: str,
    markers: list[Marker],
    allow_unterminated: bool = False,
) -> list[ResolvedFile]:
    """Resolve markers into outermost file blocks.

    Args:
        text: The text the markers were scanned from.
        markers: Output of scan_markers.
        allow_unterminated: Fallback mode. Accept one trailing block without
            an END marker; its content runs to the end of the text.

    Returns:
        Resolved files in the order their end markers were encountered.
    """
    pairs, still_open = _pair_markers(markers)
    files: list[ResolvedFile] = []
    last_end = 0

    for block in _build_candidates(markers, pairs):
        if block.nesting_depth > 0:
            logger.debug(f"Dropping nested block {block.name!r}")
            continue
        files.append(
            ResolvedFile(
                name=block.name,
                content=text[block.content_start : block.content_end].strip(),
            )
        )
        last_end = max(last_end, block.content_end)

    if allow_unterminated:
        trailing = _trailing_unterminated(text, markers, still_open, last_end)
        if trailing:
            files.append(trailing)

    return files


def _trailing_unterminated(
    text: str,
    markers: list[Marker],
    still_open: list[int],
    after: int,
) -> ResolvedFile | None:
    """Find the first unmatched start marker past every resolved block."""
    for index in still_open:
        start = markers[index]
        if start.position < after:
            continue
        content = text[start.span_end :].strip()
        if not content:
            return None
        logger.info(f"Accepting unterminated block {start.name!r}")
        return ResolvedFile(name=start.name, content=content)
    return None


def parse_files(text: str) -> list[ResolvedFile]:
    """Parse file blocks from model output. END markers are required.

    Args:
        text: Raw model output.

    Returns:
        Resolved files, possibly empty.
    """
    return resolve_blocks(text, scan_markers(text))


def parse_files_lenient(text: str) -> list[ResolvedFile]:
    """Parse file blocks, also accepting a trailing block with no END marker.

    Args:
        text: Raw model output.

    Returns:
        Resolved files, possibly empty.
    """
    return resolve_blocks(text, scan_markers(text), allow_unterminated=True)
