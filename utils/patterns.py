"""Pre-compiled regex patterns for the analysis loaders.

All patterns are compiled once at module import; the CSV loaders apply
them to every cell.

Usage:
    from utils.patterns import STATE_CODE, FISCAL_YEAR

    if STATE_CODE.fullmatch(text):
        ...
"""

import re

# Two-letter postal code (states, DC, territories)
STATE_CODE = re.compile(r'^[A-Z]{2}$')

# Fiscal year patterns in various formats
# Matches: "FY2026", "FY 2026", "2026", etc.
FISCAL_YEAR = re.compile(r'(?:FY\s*)?((?:19|20)\d{2})', re.IGNORECASE)

# Census estimate columns: POPESTIMATE2019, POPESTIMATE2024, ...
POPESTIMATE_COLUMN = re.compile(r'^POPESTIMATE(\d{4})$', re.IGNORECASE)

# Whitespace normalization: multiple spaces/tabs/newlines
WHITESPACE = re.compile(r'\s+')

# Currency symbols for stripping during numeric conversion
CURRENCY_SYMBOLS = re.compile(r'[\$€£¥₹₽]')
