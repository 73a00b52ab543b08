"""Utility helpers for number parsing and text normalization."""

from __future__ import annotations

import re
from typing import Optional

LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")
WHITESPACE_PATTERN = re.compile(r"\s+")


def parse_leading_int(value: str) -> Optional[int]:
    """Parse the leading integer of ``value`` the way browsers' parseInt does."""
    match = LEADING_INT_PATTERN.match(value or "")
    if not match:
        return None
    return int(match.group(1))


def parse_count(value: str) -> Optional[int]:
    """Parse a number that may carry thousands separators (``1,234``)."""
    return parse_leading_int(WHITESPACE_PATTERN.sub("", (value or "").replace(",", "")))


def normalize_text(value: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return WHITESPACE_PATTERN.sub(" ", value or "").strip()
