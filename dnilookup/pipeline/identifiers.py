"""Identifier recognition and text normalization shared by every extraction tier."""
from __future__ import annotations

import re
from typing import Optional

# Standalone run of 8 ASCII digits; only [A-Za-z0-9_] counts as glue
DNI_RE = re.compile(r"\b\d{8}\b", re.ASCII)
_WS_RE = re.compile(r"\s+")


def norm(s: Optional[str]) -> str:
    """Collapse whitespace runs to one space and trim."""
    return _WS_RE.sub(" ", s or "").strip()


def find_dni_in_text(text: Optional[str]) -> Optional[str]:
    m = DNI_RE.search(text or "")
    return m.group(0) if m else None


def find_all_dnis(text: Optional[str], limit: Optional[int] = None) -> list[str]:
    """Return distinct identifiers in order of first appearance.

    ``limit`` caps the number of distinct values returned.
    """
    seen: set[str] = set()
    out: list[str] = []
    for dni in DNI_RE.findall(text or ""):
        if dni in seen:
            continue
        seen.add(dni)
        out.append(dni)
    if limit is not None:
        out = out[: max(0, int(limit))]
    return out
