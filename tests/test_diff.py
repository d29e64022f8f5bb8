"""Tests for the diff engine."""
import pytest

from config_packager.config_engine import (
    DiffEngine,
    DiffKind,
    DiffRow,
    Override,
    summarize_overrides,
)


FIVE_KEYS = {"a": 1, "b": 2, "c": 3, "d": 4, "e": 5}


class TestDiffEngine:
    """Tests for DiffEngine.diff."""

    @pytest.fixture
    def engine(self):
        return DiffEngine()

    def test_equal_documents_only_context(self, engine):
        rows = engine.diff({"x": 1, "y": [1, 2]}, {"x": 1, "y": [1, 2]})

        assert rows
        assert all(row.kind == DiffKind.CONTEXT for row in rows)
        assert not DiffEngine.has_changes(rows)

    def test_reordered_keys_only_context(self, engine):
        packaged = {"label": "Article", "type": "article", "status": True}
        active = {"status": True, "type": "article", "label": "Article"}

        rows = engine.diff(packaged, active)

        assert all(row.kind == DiffKind.CONTEXT for row in rows)

    def test_changed_value(self, engine):
        """Removed packaged line comes before the added active line."""
        rows = engine.diff({"y": 3}, {"y": 2})

        assert rows == [
            DiffRow(DiffKind.REMOVED, packaged_text="y: 3"),
            DiffRow(DiffKind.ADDED, active_text="y: 2"),
        ]

    def test_key_only_in_active(self, engine):
        rows = engine.diff({"a": 1}, {"a": 1, "b": 2})

        assert [(r.kind, r.text) for r in rows] == [
            (DiffKind.CONTEXT, "a: 1"),
            (DiffKind.ADDED, "b: 2"),
        ]

    def test_missing_packaged(self, engine):
        rows = engine.diff(None, {"a": 1})

        assert [(r.kind, r.text) for r in rows] == [(DiffKind.ADDED, "a: 1")]

    def test_both_empty(self, engine):
        assert engine.diff(None, {}) == []

    def test_context_window(self):
        engine = DiffEngine(context_lines=1)
        active = dict(FIVE_KEYS, c=9)

        rows = engine.diff(FIVE_KEYS, active)

        assert [r.marker + r.text for r in rows] == [" b: 2", "-c: 3", "+c: 9", " d: 4"]

    def test_zero_context(self):
        rows = DiffEngine(context_lines=0).diff(FIVE_KEYS, dict(FIVE_KEYS, c=9))

        assert all(row.kind != DiffKind.CONTEXT for row in rows)
        assert len(rows) == 2

    def test_negative_context_rejected(self):
        with pytest.raises(ValueError):
            DiffEngine(context_lines=-1)

    def test_nested_documents(self, engine):
        packaged = {"display": {"default": {"weight": 1}}}
        active = {"display": {"default": {"weight": 2}}}

        rows = engine.diff(packaged, active)

        changed = [r for r in rows if r.kind != DiffKind.CONTEXT]
        assert [r.marker for r in changed] == ["-", "+"]
        assert "weight: 1" in changed[0].text
        assert "weight: 2" in changed[1].text


class TestDiffFormatting:
    """Tests for rendering rows."""

    def test_format(self):
        rows = DiffEngine().diff({"a": 1, "y": 3}, {"a": 1, "y": 2})

        assert DiffEngine.format(rows) == [" a: 1", "-y: 3", "+y: 2"]

    def test_side_by_side_pairs_changes(self):
        rows = DiffEngine().diff(FIVE_KEYS, dict(FIVE_KEYS, c=9))

        paired = DiffEngine.side_by_side(rows)

        assert len(paired) == 5
        changed = paired[2]
        assert changed.kind == DiffKind.CHANGED
        assert changed.packaged_text == "c: 3"
        assert changed.active_text == "c: 9"
        assert changed.marker == "~"

    def test_side_by_side_unbalanced(self):
        rows = DiffEngine().diff({"a": 1}, {"b": 2, "c": 3})

        paired = DiffEngine.side_by_side(rows)

        assert [r.kind for r in paired] == [DiffKind.CHANGED, DiffKind.ADDED]

    def test_format_changed_row(self):
        row = DiffRow(DiffKind.CHANGED, active_text="x: 2", packaged_text="x: 1")

        assert DiffEngine.format([row]) == ["-x: 1", "+x: 2"]


class TestSummarizeOverrides:
    """Tests for summarize_overrides."""

    def test_no_differences(self):
        assert summarize_overrides("article", []) == "article: no differences"

    def test_report(self):
        rows = DiffEngine().diff({"y": 3}, {"y": 2})
        report = summarize_overrides("article", [
            Override(name="b", rows=rows),
            Override(name="c", missing=True),
        ])

        assert "Differences in article (2 items):" in report
        assert "    -y: 3" in report
        assert "    +y: 2" in report
        assert "not exported to the package" in report
