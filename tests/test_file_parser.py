"""Tests for the FILENAME/END block parser."""

import time

import pytest

from committer.utils.file_parser import (
    CandidateBlock,
    Marker,
    MarkerKind,
    ResolvedFile,
    find_candidate_blocks,
    parse_files,
    parse_files_lenient,
    resolve_blocks,
    scan_markers,
)


def block(name: str, content: str) -> str:
    """Wrap content in matching markers."""
    return f"=== FILENAME: {name} ===\n{content}\n=== END: {name} ==="


class TestScanMarkers:
    """Tests for scan_markers."""

    def test_no_markers(self):
        """Test plain text yields no markers."""
        assert scan_markers("Just some prose.\nNothing to see.") == []

    def test_empty_text(self):
        """Test empty input yields no markers."""
        assert scan_markers("") == []

    def test_start_and_end(self):
        """Test a single block produces a start and an end marker."""
        text = "=== FILENAME: a.py ===\nprint(1)\n=== END: a.py ==="
        markers = scan_markers(text)

        assert [m.kind for m in markers] == [MarkerKind.START, MarkerKind.END]
        assert [m.name for m in markers] == ["a.py", "a.py"]
        assert markers[0].position == 0
        assert markers[0].span_end == len("=== FILENAME: a.py ===")
        assert markers[1].position == text.index("=== END")

    def test_name_is_trimmed(self):
        """Test surrounding whitespace is removed from names."""
        text = "=== FILENAME:   spaced-file.txt   ===\nx\n=== END:   spaced-file.txt   ==="
        markers = scan_markers(text)

        assert [m.name for m in markers] == ["spaced-file.txt", "spaced-file.txt"]

    def test_name_preserves_case_and_separators(self):
        """Test names are kept verbatim apart from trimming."""
        markers = scan_markers("=== FILENAME: Src/Components/Login.TSX ===")

        assert markers[0].name == "Src/Components/Login.TSX"

    def test_marker_mid_line_is_ignored(self):
        """Test marker syntax inside prose is not a marker."""
        text = "Use the format === FILENAME: a.py === for each file."
        assert scan_markers(text) == []

    def test_trailing_text_is_not_a_marker(self):
        """Test a line with text after the closing delimiter is ignored."""
        assert scan_markers("=== FILENAME: a.py === and more") == []

    def test_empty_name_is_ignored(self):
        """Test a marker without a name is not recognized."""
        assert scan_markers("=== FILENAME:    ===\n=== END: ===") == []

    def test_crlf_line_endings(self):
        """Test Windows line endings are accepted."""
        text = "=== FILENAME: a.py ===\r\nprint(1)\r\n=== END: a.py ===\r\n"
        markers = scan_markers(text)

        assert [m.name for m in markers] == ["a.py", "a.py"]
        assert text[markers[0].span_end] == "\r"

    def test_markers_are_ordered(self):
        """Test markers come back in textual order."""
        text = "\n".join(
            [
                "=== END: orphan.js ===",
                "=== FILENAME: a.py ===",
                "=== FILENAME: b.py ===",
                "=== END: b.py ===",
            ]
        )
        positions = [m.position for m in scan_markers(text)]

        assert positions == sorted(positions)
        assert len(positions) == 4

    def test_marker_is_immutable(self):
        """Test markers are frozen."""
        marker = Marker(kind=MarkerKind.START, name="a", position=0, span_end=1)
        with pytest.raises(AttributeError):
            marker.name = "b"  # type: ignore[misc]


class TestFindCandidateBlocks:
    """Tests for marker pairing and nesting depth."""

    def test_nested_block_depth(self):
        """Test an inner pair gets depth 1."""
        text = "\n".join(
            [
                "=== FILENAME: outer.js ===",
                "=== FILENAME: inner.js ===",
                "=== END: inner.js ===",
                "=== END: outer.js ===",
            ]
        )
        candidates = find_candidate_blocks(scan_markers(text))

        assert [(c.name, c.nesting_depth) for c in candidates] == [
            ("inner.js", 1),
            ("outer.js", 0),
        ]

    def test_unclosed_start_does_not_nest(self):
        """Test a start that never closes does not count as an enclosing block."""
        text = "\n".join(
            [
                "=== FILENAME: stray.js ===",
                "=== FILENAME: real.js ===",
                "=== END: real.js ===",
            ]
        )
        candidates = find_candidate_blocks(scan_markers(text))

        assert candidates == [
            CandidateBlock(
                name="real.js",
                content_start=text.index("=== FILENAME: real.js ===")
                + len("=== FILENAME: real.js ==="),
                content_end=text.index("=== END: real.js ==="),
                nesting_depth=0,
            )
        ]

    def test_end_matches_innermost_same_name(self):
        """Test an END closes the most recent start with its name."""
        text = "\n".join(
            [
                "=== FILENAME: a ===",
                "=== FILENAME: a ===",
                "=== END: a ===",
            ]
        )
        markers = scan_markers(text)
        candidates = find_candidate_blocks(markers)

        assert len(candidates) == 1
        assert candidates[0].content_start == markers[1].span_end

    def test_end_skips_unrelated_open_starts(self):
        """Test starts above the matched one stay open."""
        text = "\n".join(
            [
                "=== FILENAME: a ===",
                "=== FILENAME: b ===",
                "=== END: a ===",
                "=== END: b ===",
            ]
        )
        candidates = find_candidate_blocks(scan_markers(text))

        assert [(c.name, c.nesting_depth) for c in candidates] == [
            ("a", 0),
            ("b", 1),
        ]


class TestParseFiles:
    """Tests for strict parsing."""

    def test_readme_and_tsx(self):
        """Test two sequential blocks."""
        text = (
            "=== FILENAME: README.md ===\n# Test\n=== END: README.md ===\n\n"
            "=== FILENAME: src/x.tsx ===\nimport X\n=== END: src/x.tsx ==="
        )

        assert parse_files(text) == [
            ResolvedFile(name="README.md", content="# Test"),
            ResolvedFile(name="src/x.tsx", content="import X"),
        ]

    def test_intersecting_blocks_keep_outermost(self):
        """Test a nested block is kept only as part of the outer content."""
        text = (
            "=== FILENAME: outer.js ===\nA\n=== FILENAME: inner.js ===\nB\n"
            "=== END: inner.js ===\nC\n=== END: outer.js ==="
        )

        files = parse_files(text)

        assert files == [
            ResolvedFile(
                name="outer.js",
                content="A\n=== FILENAME: inner.js ===\nB\n=== END: inner.js ===\nC",
            )
        ]

    def test_mismatched_names(self):
        """Test a start closed by a differently named END is dropped."""
        text = (
            "=== FILENAME: correct.js ===\nconsole.log('correct');\n"
            "=== END: wrong.js ===\n\n"
            "=== FILENAME: valid.py ===\nprint('valid')\n=== END: valid.py ==="
        )

        files = parse_files(text)

        assert [f.name for f in files] == ["valid.py"]
        assert files[0].content == "print('valid')"

    def test_single_mismatch_yields_nothing(self):
        """Test neither name of a mismatched pair is produced."""
        text = "=== FILENAME: x.js ===\ncontent\n=== END: y.js ==="
        assert parse_files(text) == []

    def test_missing_end_is_rejected(self):
        """Test a block without an END marker yields no file."""
        assert parse_files("=== FILENAME: incomplete.js ===\nconsole.log(1)") == []

    def test_leading_orphan_end(self):
        """Test an orphaned END before a valid block is ignored."""
        text = "=== END: ghost.js ===\n" + block("real.js", "let x = 1;")

        assert parse_files(text) == [ResolvedFile(name="real.js", content="let x = 1;")]

    def test_duplicate_end_markers(self):
        """Test a repeated END marker does not create a second file."""
        text = block("a.py", "x = 1") + "\n=== END: a.py ==="

        assert parse_files(text) == [ResolvedFile(name="a.py", content="x = 1")]

    def test_multiple_disjoint_blocks_in_order(self):
        """Test N disjoint blocks give N files in textual order."""
        names = [f"file{i}.txt" for i in range(5)]
        text = "\n\nSome text between files\n\n".join(
            block(name, f"content of {name}") for name in names
        )

        files = parse_files(text)

        assert [f.name for f in files] == names
        assert files[3].content == "content of file3.txt"

    def test_duplicate_names_are_kept(self):
        """Test separate blocks with the same name are both returned."""
        text = block("a.txt", "first") + "\n" + block("a.txt", "second")

        assert [f.content for f in parse_files(text)] == ["first", "second"]

    def test_empty_file_content(self):
        """Test a block with only blank lines yields empty content."""
        text = "=== FILENAME: empty.txt ===\n\n=== END: empty.txt ==="

        assert parse_files(text) == [ResolvedFile(name="empty.txt", content="")]

    def test_adjacent_markers(self):
        """Test a block with no content lines at all."""
        text = "=== FILENAME: e.txt ===\n=== END: e.txt ==="

        assert parse_files(text) == [ResolvedFile(name="e.txt", content="")]

    def test_surrounding_prose(self):
        """Test prose before and after blocks is ignored."""
        text = (
            "I'll help you create a component.\n\n"
            + block("src/Button.js", "export default Button;")
            + "\n\nThe component is ready to use!"
        )

        assert parse_files(text) == [
            ResolvedFile(name="src/Button.js", content="export default Button;")
        ]

    def test_interleaved_blocks_keep_first(self):
        """Test overlapping non-nested blocks keep the one opened first."""
        text = "\n".join(
            [
                "=== FILENAME: a.js ===",
                "A",
                "=== FILENAME: b.js ===",
                "B",
                "=== END: a.js ===",
                "=== END: b.js ===",
            ]
        )

        files = parse_files(text)

        assert [f.name for f in files] == ["a.js"]
        assert files[0].content == "A\n=== FILENAME: b.js ===\nB"

    def test_stray_start_does_not_hide_valid_block(self):
        """Test an unterminated start before a valid block is harmless."""
        text = "=== FILENAME: stray.js ===\n" + block("ok.py", "print('ok')")

        assert parse_files(text) == [ResolvedFile(name="ok.py", content="print('ok')")]

    def test_deeply_nested(self):
        """Test arbitrary nesting keeps only the outermost block."""
        names = [f"level{i}.txt" for i in range(6)]
        text = "body"
        for name in reversed(names):
            text = block(name, text)

        files = parse_files(text)

        assert [f.name for f in files] == ["level0.txt"]
        assert files[0].content.startswith("=== FILENAME: level1.txt ===")

    def test_crlf_content(self):
        """Test content from CRLF text is trimmed of line endings."""
        text = "=== FILENAME: a.py ===\r\nx = 1\r\n=== END: a.py ===\r\n"

        assert parse_files(text) == [ResolvedFile(name="a.py", content="x = 1")]

    def test_trimming_is_idempotent(self):
        """Test re-wrapping a parsed file's content parses to the same content."""
        text = block("a.md", "\n\n  # Title\n\nbody text  \n\n")
        first = parse_files(text)[0]

        second = parse_files(block(first.name, first.content))[0]

        assert second == first

    def test_many_unmatched_markers_stay_linear(self):
        """Test stray starts and orphan ends do not slow pairing down."""
        count = 50000
        noise = "\n".join(
            [f"=== FILENAME: s{i} ===" for i in range(count)]
            + [f"=== END: o{i} ===" for i in range(count)]
        )
        text = noise + "\n" + block("real.py", "print('real')")

        started = time.perf_counter()
        files = parse_files(text)
        elapsed = time.perf_counter() - started

        assert files == [ResolvedFile(name="real.py", content="print('real')")]
        assert elapsed < 10

    def test_parse_is_deterministic(self):
        """Test identical input gives identical output."""
        text = block("a.py", "x = 1") + "\n=== END: zz ===\n" + block("b.py", "y")

        assert parse_files(text) == parse_files(text)


class TestLenientParsing:
    """Tests for the fallback mode accepting a trailing unterminated block."""

    def test_unterminated_block_accepted(self):
        """Test content runs to the end of input."""
        text = "=== FILENAME: incomplete.js ===\nconsole.log(1)\n"

        assert parse_files_lenient(text) == [
            ResolvedFile(name="incomplete.js", content="console.log(1)")
        ]

    def test_unterminated_after_complete_block(self):
        """Test a trailing unterminated block follows complete ones."""
        text = block("a.py", "x = 1") + "\n=== FILENAME: b.py ===\ny = 2"

        assert parse_files_lenient(text) == [
            ResolvedFile(name="a.py", content="x = 1"),
            ResolvedFile(name="b.py", content="y = 2"),
        ]

    def test_empty_unterminated_block_rejected(self):
        """Test a trailing start with no content is still dropped."""
        assert parse_files_lenient("=== FILENAME: nothing.txt ===\n   \n") == []

    def test_start_inside_resolved_block_not_reopened(self):
        """Test an unmatched start inside a kept block is not extracted."""
        text = "\n".join(
            [
                "=== FILENAME: stray.js ===",
                "=== FILENAME: ok.py ===",
                "print('ok')",
                "=== END: ok.py ===",
            ]
        )

        assert [f.name for f in parse_files_lenient(text)] == ["ok.py"]

    def test_strict_matches_lenient_for_complete_input(self):
        """Test both modes agree when every block is terminated."""
        text = block("a.py", "x = 1") + "\n" + block("b.py", "y = 2")

        assert parse_files_lenient(text) == parse_files(text)

    def test_resolve_blocks_flag(self):
        """Test the resolver flag drives the fallback."""
        text = "=== FILENAME: t.txt ===\ntrailing"
        markers = scan_markers(text)

        assert resolve_blocks(text, markers) == []
        assert resolve_blocks(text, markers, allow_unterminated=True) == [
            ResolvedFile(name="t.txt", content="trailing")
        ]
