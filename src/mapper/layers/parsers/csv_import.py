"""Parse CSV text into a header row and data rows.

Uses the stdlib csv module, so quoted cells may contain commas. Blank
lines are skipped and every cell is whitespace-trimmed.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field


@dataclass
class Table:
    """Tabular upload content.

    Attributes:
        headers: Column names from the first non-blank line.
        rows: Remaining lines, one list of cells per row.
    """

    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)

    def records(self, mapping: dict[str, str]) -> list[dict[str, str]]:
        """Rows keyed by semantic type, keeping only mapped columns.

        Args:
            mapping: Column name to semantic type (e.g. "Endereço" -> "address").
        """
        indexed = [(idx, mapping[h]) for idx, h in enumerate(self.headers) if mapping.get(h)]
        return [
            {kind: row[idx] for idx, kind in indexed if idx < len(row)}
            for row in self.rows
        ]


def parse_csv(csv_string: str) -> Table | None:
    """Parse CSV text.

    Returns:
        Table, or None when the text holds no non-blank line.
    """
    lines = [
        [cell.strip() for cell in row]
        for row in csv.reader(io.StringIO(csv_string))
        if any(cell.strip() for cell in row)
    ]
    if not lines:
        return None
    return Table(headers=lines[0], rows=lines[1:])
