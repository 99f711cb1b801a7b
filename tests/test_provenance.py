"""Tests for the line provenance table."""

from __future__ import annotations

from spritesass.provenance import ProvenanceTable, Segment


class TestLookup:
    def test_single_file(self) -> None:
        table = ProvenanceTable("main.scss")
        assert table.lookup(0) == ("main.scss", 1)
        assert table.lookup(5) == ("main.scss", 6)

    def test_negative_line_is_top_of_main(self) -> None:
        assert ProvenanceTable("main.scss").lookup(-1) == ("main.scss", 1)

    def test_segments(self) -> None:
        table = ProvenanceTable("main.scss")
        table.mark(2, "_a", 1)
        table.mark(5, "main.scss", 3)
        assert table.lookup(1) == ("main.scss", 2)
        assert table.lookup(2) == ("_a", 1)
        assert table.lookup(4) == ("_a", 3)
        assert table.lookup(5) == ("main.scss", 3)
        assert table.lookup(9) == ("main.scss", 7)

    def test_locate_offset(self) -> None:
        table = ProvenanceTable("main.scss")
        table.mark(1, "_a", 1)
        source = "x\ny\nz"
        assert table.locate(source, 0) == "main.scss:1"
        assert table.locate(source, 2) == "_a:1"
        assert table.locate(source, 4) == "_a:2"


class TestMark:
    def test_keys_strictly_increasing(self) -> None:
        table = ProvenanceTable("main.scss")
        table.mark(3, "_a", 1)
        table.mark(6, "main.scss", 2)
        keys = table.keys()
        assert keys == sorted(set(keys))
        assert keys == [0, 3, 6]

    def test_later_mark_overrides(self) -> None:
        table = ProvenanceTable("main.scss")
        table.mark(5, "_a", 1)
        table.mark(3, "_b", 1)
        assert list(table) == [Segment(0, "main.scss", 1), Segment(3, "_b", 1)]

    def test_mark_at_zero_replaces_main(self) -> None:
        table = ProvenanceTable("main.scss")
        table.mark(0, "_a", 1)
        assert len(table) == 1
        assert table.lookup(0) == ("_a", 1)


class TestSplice:
    def test_splice_shifts_inner_segments(self) -> None:
        inner = ProvenanceTable("_a")
        inner.mark(2, "_b", 1)
        outer = ProvenanceTable("main.scss")
        outer.splice(4, inner)
        assert outer.keys() == [0, 4, 6]
        assert outer.lookup(4) == ("_a", 1)
        assert outer.lookup(6) == ("_b", 1)
        assert outer.lookup(7) == ("_b", 2)
