"""Diff engine for comparing packaged and active configuration.

Both documents are serialized canonically before comparison, so key
order never shows up as a change.
"""
from typing import Any, Optional

from ..config_store.store import canonical_yaml
from .schema import DiffKind, DiffRow, Override


class DiffEngine:
    """Line diff between the packaged and active version of an item."""

    def __init__(self, context_lines: Optional[int] = None):
        """
        Args:
            context_lines: Unchanged lines kept around each change
                (None keeps the whole document)
        """
        if context_lines is not None and context_lines < 0:
            raise ValueError("context_lines must be >= 0")
        self.context_lines = context_lines

    def diff(
        self,
        packaged: Optional[dict[str, Any]],
        active: Optional[dict[str, Any]],
    ) -> list[DiffRow]:
        """
        Calculate the diff from packaged to active.

        Args:
            packaged: Document from extension storage (None = empty)
            active: Document from active storage (None = empty)

        Returns:
            Ordered DiffRows; lines only in active are ADDED,
            lines only in packaged are REMOVED
        """
        packaged_lines = canonical_yaml(packaged).splitlines()
        active_lines = canonical_yaml(active).splitlines()

        rows = self._lcs_rows(packaged_lines, active_lines)

        if self.context_lines is not None:
            rows = self._trim_context(rows, self.context_lines)
        return rows

    def _lcs_rows(self, old: list[str], new: list[str]) -> list[DiffRow]:
        n, m = len(old), len(new)

        # lengths[i][j] = LCS length of old[i:] and new[j:]
        lengths = [[0] * (m + 1) for _ in range(n + 1)]
        for i in range(n - 1, -1, -1):
            for j in range(m - 1, -1, -1):
                if old[i] == new[j]:
                    lengths[i][j] = lengths[i + 1][j + 1] + 1
                else:
                    lengths[i][j] = max(lengths[i + 1][j], lengths[i][j + 1])

        rows = []
        i = j = 0
        while i < n and j < m:
            if old[i] == new[j]:
                rows.append(DiffRow(DiffKind.CONTEXT, active_text=new[j], packaged_text=old[i]))
                i += 1
                j += 1
            elif lengths[i + 1][j] >= lengths[i][j + 1]:
                rows.append(DiffRow(DiffKind.REMOVED, packaged_text=old[i]))
                i += 1
            else:
                rows.append(DiffRow(DiffKind.ADDED, active_text=new[j]))
                j += 1

        rows.extend(DiffRow(DiffKind.REMOVED, packaged_text=line) for line in old[i:])
        rows.extend(DiffRow(DiffKind.ADDED, active_text=line) for line in new[j:])
        return rows

    def _trim_context(self, rows: list[DiffRow], window: int) -> list[DiffRow]:
        changes = [i for i, row in enumerate(rows) if row.kind != DiffKind.CONTEXT]
        keep = set()
        for i in changes:
            keep.update(range(max(0, i - window), min(len(rows), i + window + 1)))
        return [row for i, row in enumerate(rows) if i in keep]

    @staticmethod
    def has_changes(rows: list[DiffRow]) -> bool:
        return any(row.kind != DiffKind.CONTEXT for row in rows)

    @staticmethod
    def format(rows: list[DiffRow]) -> list[str]:
        """Render rows as marker-prefixed lines, without a header."""
        lines = []
        for row in rows:
            if row.kind == DiffKind.CHANGED:
                lines.append(f"-{row.packaged_text}")
                lines.append(f"+{row.active_text}")
            else:
                lines.append(f"{row.marker}{row.text}")
        return lines

    @staticmethod
    def side_by_side(rows: list[DiffRow]) -> list[DiffRow]:
        """
        Pair removed and added runs into CHANGED rows.

        Used for two-column display (active | packaged).
        """
        paired: list[DiffRow] = []
        removed: list[DiffRow] = []
        added: list[DiffRow] = []

        def flush():
            for old, new in zip(removed, added):
                paired.append(DiffRow(
                    DiffKind.CHANGED,
                    active_text=new.active_text,
                    packaged_text=old.packaged_text,
                ))
            paired.extend(removed[len(added):])
            paired.extend(added[len(removed):])
            removed.clear()
            added.clear()

        for row in rows:
            if row.kind == DiffKind.REMOVED:
                if added:
                    flush()
                removed.append(row)
            elif row.kind == DiffKind.ADDED:
                added.append(row)
            else:
                flush()
                paired.append(row)
        flush()
        return paired


def summarize_overrides(package_name: str, overrides: list[Override]) -> str:
    """
    Create a human-readable report of a package's differences.

    Useful for CLI output and logging.
    """
    if not overrides:
        return f"{package_name}: no differences"

    lines = [f"Differences in {package_name} ({len(overrides)} items):"]
    for override in overrides:
        lines.append("")
        lines.append(f"  {override.name}")
        if override.missing:
            lines.append(f"    {override.message}")
            continue
        for line in DiffEngine.format(override.rows):
            lines.append(f"    {line}")

    return "\n".join(lines)
