from __future__ import annotations

import arabic_reshaper
from bidi.algorithm import get_display


def _is_rtl(text: str) -> bool:
    return any("\u0590" <= c <= "\u06ff" for c in text)


def printable(text: str) -> str:
    """Reorder right-to-left text (Hebrew, Arabic) for correct display in terminals."""
    if not _is_rtl(text):
        return text
    return get_display(arabic_reshaper.reshape(text))
