"""Explicit note references in natural language queries."""

from __future__ import annotations

import re
from typing import List

NOTE_TITLE_RE = re.compile(r"\[\[([^\[\]]*)\]\]")
# Alias (|), heading (#) and block (^) suffixes are not part of the note title.
_LINK_SUFFIX_RE = re.compile(r"[|#^]")


def extract_note_titles(query: str) -> List[str]:
    """Return the distinct ``[[Title]]`` references in ``query``, left to right.

    Unterminated or empty links are ignored. ``[[Title|alias]]`` and
    ``[[Title#Heading]]`` both yield ``Title``.
    """

    if not isinstance(query, str) or not query:
        return []

    titles: List[str] = []
    seen: set[str] = set()
    for match in NOTE_TITLE_RE.finditer(query):
        title = _LINK_SUFFIX_RE.split(match.group(1), maxsplit=1)[0].strip()
        if title and title not in seen:
            seen.add(title)
            titles.append(title)
    return titles
