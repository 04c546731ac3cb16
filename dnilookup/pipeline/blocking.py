from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List


# Challenge-page signatures of the edge/anti-bot provider (matched case-insensitively)
BLOCK_MARKERS = [
    r"cf-browser-verification",
    r"cloudflare",
    r"attention required",
    r"please enable javascript",
    r"Just a moment\s*\.\.\.",
    r"Enable JavaScript and cookies to continue",
    r"__cf_chl_",  # Cloudflare challenge scripts
]

_BLOCK_RES = [re.compile(pat, re.IGNORECASE) for pat in BLOCK_MARKERS]


@dataclass(frozen=True)
class BlockDecision:
    blocked: bool
    reasons: List[str]


def detect_block(html: str | None) -> BlockDecision:
    """Classify fetched HTML as an anti-bot interstitial or a usable page.

    Absence of a marker is not proof of success; it only means no known
    challenge signature was seen.
    """
    reasons: List[str] = []
    if not html:
        return BlockDecision(blocked=False, reasons=reasons)
    for rx in _BLOCK_RES:
        if rx.search(html):
            reasons.append(f"marker:{rx.pattern}")
    return BlockDecision(blocked=len(reasons) > 0, reasons=reasons)


def is_blocked(html: str | None) -> bool:
    if not html:
        return False
    return any(rx.search(html) for rx in _BLOCK_RES)
