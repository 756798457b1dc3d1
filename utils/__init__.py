"""Shared utilities for the spending/elections analysis."""

# Errors
from utils.errors import (
    AnalysisError,
    RemoteServiceError,
    MalformedInputError,
    SkippableRowError,
)

# Pattern definitions
from utils.patterns import STATE_CODE, FISCAL_YEAR, POPESTIMATE_COLUMN

# String utilities
from utils.strings import (
    safe_float,
    parse_number,
    normalize_whitespace,
    normalize_state_name,
    normalize_header,
)

# Caching
from utils.cache import TTLCache

# HTTP utilities
from utils.http import (
    RetryStrategy,
    SessionManager,
    CacheManager,
)

# Output formatting
from utils.formatting import (
    format_dollars,
    format_amount,
    format_percent,
    format_p_value,
    TableFormatter,
)

# Configuration
from utils.config import (
    Config,
    FetchConfig,
    WindowConfig,
    DataPaths,
    AppConfig,
    KnownValues,
)

__all__ = [
    # Errors
    "AnalysisError",
    "RemoteServiceError",
    "MalformedInputError",
    "SkippableRowError",
    # Patterns
    "STATE_CODE",
    "FISCAL_YEAR",
    "POPESTIMATE_COLUMN",
    # Strings
    "safe_float",
    "parse_number",
    "normalize_whitespace",
    "normalize_state_name",
    "normalize_header",
    # Cache
    "TTLCache",
    # HTTP
    "RetryStrategy",
    "SessionManager",
    "CacheManager",
    # Formatting
    "format_dollars",
    "format_amount",
    "format_percent",
    "format_p_value",
    "TableFormatter",
    # Config
    "Config",
    "FetchConfig",
    "WindowConfig",
    "DataPaths",
    "AppConfig",
    "KnownValues",
]
