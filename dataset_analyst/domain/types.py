"""
Core type definitions and constants.
"""
from __future__ import annotations

from typing import Literal

OutcomeStatus = Literal["completed", "blocked", "error"]
MessageRole = Literal["user", "assistant"]

SUPPORTED_UPLOAD_SUFFIXES = (".csv", ".xlsx", ".xls")
MAX_UPLOAD_BYTES = 25 * 1024 * 1024


class ErrorCode:
    NOT_FOUND = "NOT_FOUND"
    DATASET_NOT_FOUND = "DATASET_NOT_FOUND"
    INVALID_FILENAME = "INVALID_FILENAME"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    EMPTY_QUESTION = "EMPTY_QUESTION"


# Analytics error codes that map to HTTP 404; every other analytics code maps
# to 422.
NOT_FOUND_CODES = frozenset({"FILE_NOT_FOUND", "DATASET_NOT_FOUND", "NOT_FOUND"})
