"""Card ordinals required by cloze deletions in a note's fields."""

import re

# {{c1::text}}, {{c2::text::hint}}; numbering starts at 1, so c0 never matches
CLOZE_MARKER = re.compile(r"\{\{c([1-9]\d*)::[^}]*\}\}")


def cloze_ordinals(field_text: str) -> list[int]:
    """Return the sorted, de-duplicated 0-based ordinals referenced in ``field_text``.

    >>> cloze_ordinals("{{c2::b}} {{c2::b2}} {{c1::a}}")
    [0, 1]
    >>> cloze_ordinals("{{c0::x}}")
    []
    """
    return sorted({int(number) - 1 for number in CLOZE_MARKER.findall(field_text)})
