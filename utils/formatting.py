"""Output formatting utilities for the analysis summaries.

Provides reusable functions for:
- Formatting per-capita dollar amounts and margins
- Formatting regression statistics
- Plain-text tables for the CLI summary
"""

from typing import Optional, List, Any


def format_dollars(value: Optional[float]) -> str:
    """Format a dollar amount rounded to whole dollars.

    Examples:
        format_dollars(1234.6) -> "$1,235"
        format_dollars(-52.2) -> "-$52"
        format_dollars(None) -> ""
    """
    if value is None or value != value:
        return ""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(round(value)):,}"


def format_amount(value: Optional[float]) -> str:
    """Format a large total in compact notation ("$1.2B", "$3.4M").

    Examples:
        format_amount(1_234_567_890) -> "$1.2B"
        format_amount(None) -> "-"
    """
    if value is None:
        return "-"
    magnitude = abs(value)
    sign = "-" if value < 0 else ""
    if magnitude >= 1_000_000_000:
        return f"{sign}${magnitude / 1_000_000_000:.1f}B"
    if magnitude >= 1_000_000:
        return f"{sign}${magnitude / 1_000_000:.1f}M"
    return f"{sign}${magnitude:,.0f}"


def format_percent(value: Optional[float], precision: int = 1) -> str:
    """Format a fraction (0.2 = 20%) as a percentage.

    Examples:
        format_percent(0.2) -> "20.0%"
        format_percent(-0.25) -> "-25.0%"
        format_percent(None) -> ""
    """
    if value is None or value != value:
        return ""
    return f"{value * 100:.{precision}f}%"


def format_p_value(value: Optional[float]) -> str:
    """Format a p-value, collapsing tiny values to "<0.001"."""
    if value is None:
        return "-"
    if value < 0.001:
        return "<0.001"
    return f"{value:.3f}"


class TableFormatter:
    """Formats rows as a fixed-width plain-text table."""

    def __init__(self, headers: List[str], align: Optional[List[str]] = None):
        """Initialize table formatter.

        Args:
            headers: Column headers
            align: Per-column alignment, "l" or "r" (default: all left)
        """
        self.headers = headers
        self.align = align or ["l"] * len(headers)
        self.rows: List[List[str]] = []

    def add_row(self, values: List[Any]) -> None:
        self.rows.append(["" if v is None else str(v) for v in values])

    def render(self) -> str:
        widths = [len(h) for h in self.headers]
        for row in self.rows:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], len(cell))

        def fmt(cells: List[str]) -> str:
            out = []
            for i, cell in enumerate(cells):
                if self.align[i] == "r":
                    out.append(cell.rjust(widths[i]))
                else:
                    out.append(cell.ljust(widths[i]))
            return "  ".join(out).rstrip()

        lines = [fmt(self.headers), "  ".join("-" * w for w in widths)]
        lines.extend(fmt(row) for row in self.rows)
        return "\n".join(lines)
