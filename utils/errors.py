"""Error taxonomy for the spending/elections analysis.

Three failure classes, with different propagation rules:

- RemoteServiceError  -- the obligation service returned a non-2xx status or
  the request failed at the transport level.  Fatal for that fiscal year;
  the run is aborted rather than defaulting the year to zero.  Also raised
  when the fetcher returns no mapping for a requested year.
- MalformedInputError -- a reference table is missing a required header
  column, or is not valid JSON, UTF-8 text or a readable workbook.  Fatal
  for that file's load.
- SkippableRowError   -- a single row could not be used (missing key,
  unparseable number).  Raised and caught inside the loaders; the row is
  logged and skipped and processing continues.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for all analysis pipeline errors."""


class RemoteServiceError(AnalysisError):
    """The USAspending geography endpoint could not be used for a fiscal year."""

    def __init__(self, message: str, fiscal_year: int | None = None,
                 status_code: int | None = None) -> None:
        super().__init__(message)
        self.fiscal_year = fiscal_year
        self.status_code = status_code


class MalformedInputError(AnalysisError):
    """A reference file is unusable: required columns are missing or its content cannot be read."""

    def __init__(self, message: str, source: str = "",
                 missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.source = source
        self.missing = list(missing or [])


class SkippableRowError(AnalysisError):
    """A single input row is unusable; the caller skips it and moves on."""

    def __init__(self, reason: str, row_number: int | None = None) -> None:
        if row_number is not None:
            message = f"row {row_number}: {reason}"
        else:
            message = reason
        super().__init__(message)
        self.reason = reason
        self.row_number = row_number
