"""Domain layer for dataset-analyst."""
from .types import ErrorCode, MessageRole, NOT_FOUND_CODES, OutcomeStatus, SUPPORTED_UPLOAD_SUFFIXES, MAX_UPLOAD_BYTES

__all__ = ["ErrorCode", "MessageRole", "NOT_FOUND_CODES", "OutcomeStatus", "SUPPORTED_UPLOAD_SUFFIXES",
           "MAX_UPLOAD_BYTES"]
