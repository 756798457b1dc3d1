"""String processing utilities for the analysis loaders.

The parsers call these once per CSV cell, so the patterns are pre-compiled
in utils.patterns.
"""

from utils.patterns import WHITESPACE, CURRENCY_SYMBOLS


def safe_float(val, default: float = 0.0) -> float:
    """Safely convert value to float with fallback default.

    Handles:
    - None, empty strings -> default
    - Numeric types -> float
    - Strings with currency symbols, whitespace, commas
    - Invalid input -> default

    Args:
        val: Value to convert (any type)
        default: Value to return on failure (default: 0.0)

    Returns:
        float: Parsed value or default
    """
    if val is None or val == '':
        return default
    if isinstance(val, (int, float)):
        return float(val)

    try:
        s = str(val).strip()
        s = CURRENCY_SYMBOLS.sub('', s)
        s = s.replace(',', '').strip()
        return float(s) if s else default
    except (ValueError, TypeError):
        return default


def parse_number(val) -> float | None:
    """Parse a numeric cell, returning None instead of a default on failure.

    Used where an unparseable value must be distinguished from zero
    (population counts).
    """
    sentinel = float("nan")
    result = safe_float(val, default=sentinel)
    if result != result:  # NaN
        return None
    return result


def normalize_whitespace(s: str) -> str:
    """Collapse tabs, newlines and runs of spaces to single spaces."""
    return WHITESPACE.sub(' ', s).strip()


def normalize_state_name(name: str) -> str:
    """Upper-case and whitespace-normalise a state or territory name.

    Example:
        "  District  of Columbia " -> "DISTRICT OF COLUMBIA"
    """
    if not name:
        return ""
    return normalize_whitespace(str(name)).upper()


def normalize_header(header) -> str:
    """Normalise a CSV header cell for name-based column lookup."""
    if header is None:
        return ""
    return normalize_whitespace(str(header).replace("\ufeff", "")).lower()
