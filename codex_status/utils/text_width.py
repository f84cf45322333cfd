"""Terminal display width and truncation.

Widths follow what terminals actually draw: combining marks, joiners and
variation selectors take no column, East Asian wide characters and emoji take
two, everything else one. Truncation works on clusters (a visible base plus
the zero-width code points attached to it) so accents and emoji sequences are
never cut apart.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterator

ZERO_WIDTH_JOINER = 0x200D

_ZERO_WIDTH_RANGES = (
    (0x0000, 0x001F),  # C0 controls
    (0x007F, 0x009F),  # DEL and C1 controls
    (0x200B, 0x200F),  # zero width space, ZWNJ, ZWJ, direction marks
    (0x2060, 0x2064),
    (0xFE00, 0xFE0F),  # variation selectors
    (0xFEFF, 0xFEFF),
    (0xE0000, 0xE007F),  # tags
    (0xE0100, 0xE01EF),  # variation selectors supplement
)

_WIDE_RANGES = (
    (0x1F000, 0x1F02F),  # mahjong tiles
    (0x1F0A0, 0x1F0FF),  # playing cards
    (0x1F100, 0x1F1FF),  # enclosed alphanumerics, regional indicators
    (0x1F300, 0x1F5FF),  # symbols and pictographs
    (0x1F600, 0x1F64F),  # emoticons
    (0x1F680, 0x1F6FF),  # transport and map
    (0x1F900, 0x1F9FF),  # supplemental symbols and pictographs
    (0x1FA70, 0x1FAFF),  # symbols and pictographs extended-A
    (0x2600, 0x26FF),  # miscellaneous symbols
    (0x2700, 0x27BF),  # dingbats
)

_EMOJI_MODIFIERS = (0x1F3FB, 0x1F3FF)
_REGIONAL_INDICATORS = (0x1F1E6, 0x1F1FF)


def _in_ranges(code: int, ranges: tuple[tuple[int, int], ...]) -> bool:
    return any(low <= code <= high for low, high in ranges)


def _is_zero_width(ch: str) -> bool:
    code = ord(ch)
    if _in_ranges(code, _ZERO_WIDTH_RANGES):
        return True
    return unicodedata.combining(ch) != 0 or unicodedata.category(ch) in ("Mn", "Me")


def char_width(ch: str) -> int:
    """Return the number of terminal columns a single code point occupies."""
    if _is_zero_width(ch):
        return 0
    if unicodedata.east_asian_width(ch) in ("W", "F"):
        return 2
    if _in_ranges(ord(ch), _WIDE_RANGES):
        return 2
    return 1


def _is_regional_indicator(ch: str) -> bool:
    low, high = _REGIONAL_INDICATORS
    return low <= ord(ch) <= high


def iter_clusters(text: str) -> Iterator[tuple[str, int]]:
    """Yield (cluster, width) pairs.

    A cluster is one visible code point followed by every zero-width code
    point, emoji modifier or ZWJ-joined code point that belongs to it, or a
    pair of regional indicators forming a flag. Leading zero-width code
    points with no base form their own zero-width cluster.
    """
    cluster = ""
    width = 0
    joined = False
    for ch in text:
        code = ord(ch)
        if cluster:
            attach = (
                joined
                or _is_zero_width(ch)
                or _EMOJI_MODIFIERS[0] <= code <= _EMOJI_MODIFIERS[1]
                or (
                    len(cluster) == 1
                    and _is_regional_indicator(cluster)
                    and _is_regional_indicator(ch)
                )
            )
            if attach:
                cluster += ch
                joined = code == ZERO_WIDTH_JOINER
                continue
            yield cluster, width
        cluster = ch
        width = char_width(ch)
        joined = code == ZERO_WIDTH_JOINER
    if cluster:
        yield cluster, width


def display_width(text: str) -> int:
    """Return the number of terminal columns the text occupies."""
    return sum(width for _, width in iter_clusters(text))


def truncate_to_terminal(text: str, columns: int | None) -> str:
    """Clip text so it fits in ``columns`` terminal columns.

    A missing or non-positive budget disables truncation.
    """
    if not columns or columns <= 0:
        return text

    used = 0
    pieces: list[str] = []
    for cluster, width in iter_clusters(text):
        if used + width > columns:
            return "".join(pieces)
        pieces.append(cluster)
        used += width
    return text
