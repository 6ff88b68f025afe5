"""Column-name heuristics shared by the guard and the baseline report."""
from __future__ import annotations

import re

_IDENTIFIER_PATTERNS = tuple(re.compile(p) for p in (
    r"^id$", r"_id$", r"^uuid$", r"^guid$", r"^hash$", r"_hash$",
    r"^key$", r"_key$", r"^pk$", r"^fk$", r"^primary_key$", r"^foreign_key$",
))

_TIMESTAMP_PATTERNS = tuple(re.compile(p) for p in (
    r"timestamp", r"_at$", r"^created", r"^updated", r"^date$", r"^time$", r"datetime",
))


def is_identifier_column(name: str) -> bool:
    """True for names like ``id``, ``order_id`` or ``session_key``."""
    lowered = name.strip().lower()
    return any(p.search(lowered) for p in _IDENTIFIER_PATTERNS)


def is_timestamp_column(name: str) -> bool:
    lowered = name.strip().lower()
    return any(p.search(lowered) for p in _TIMESTAMP_PATTERNS)
