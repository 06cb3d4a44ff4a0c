"""Heuristic signed-document detection over extracted PDF text."""
from __future__ import annotations

import re

# Evaluated in order; the first hit wins. `.` deliberately stays on one line.
SIGNATURE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"signature.*date", re.IGNORECASE),
    re.compile(r"signed.*on.*\d{1,2}/\d{1,2}/\d{2,4}", re.IGNORECASE),
    re.compile(r"electronically.*signed", re.IGNORECASE),
    re.compile(r"/s/.*[A-Z][a-z]+.*[A-Z][a-z]+", re.IGNORECASE),  # "/s/ First Last"
    re.compile(r"agreed.*and.*executed", re.IGNORECASE),
    re.compile(r"witness.*whereof", re.IGNORECASE),
)

SIGNATURE_KEYWORDS = (
    "signature",
    "signed by",
    "electronically signed",
    "/s/",
    "digitally signed",
    "executed on",
    "agreed and acknowledged",
)


def matching_pattern(text: str) -> re.Pattern[str] | None:
    for pattern in SIGNATURE_PATTERNS:
        if pattern.search(text or ""):
            return pattern
    return None


def is_signed(text: str) -> bool:
    """
    True when the text looks like an executed document.

    Advisory only: callers should let a human confirm before relying on it.
    """
    return matching_pattern(text) is not None


def contains_signature_indicators(text: str) -> bool:
    lower = (text or "").lower()
    return any(k in lower for k in SIGNATURE_KEYWORDS)
