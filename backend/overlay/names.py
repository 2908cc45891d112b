"""
Team-name folding for cross-provider matching.

Providers spell clubs differently ("FC København", "Copenhagen",
"Kobenhavn"). fold_team_name reduces a display name to a compact ASCII key;
sides_match decides whether two keys plausibly name the same club.
"""
from __future__ import annotations

import re
import unicodedata

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Letters NFKD leaves intact.
_TRANSLIT = str.maketrans({
    "ø": "o",
    "æ": "ae",
    "å": "a",
    "ß": "ss",
    "œ": "oe",
    "đ": "d",
    "ð": "d",
    "ł": "l",
    "ı": "i",
    "þ": "th",
})

CLUB_AFFIXES: frozenset[str] = frozenset({
    "fc", "cf", "afc", "sc", "fk", "cd", "ud", "ac", "as", "ss", "sk", "bk", "sv", "ca", "if",
})

# Folded spelling -> canonical folded key.
TEAM_ALIASES: dict[str, str] = {
    "copenhagen": "kobenhavn",
    "parissaintgermain": "psg",
    "parissg": "psg",
    "manchesterunited": "manutd",
    "manunited": "manutd",
    "manchestercity": "mancity",
    "atleticomadrid": "atleti",
    "atleticodemadrid": "atleti",
    "clubatleticodemadrid": "atleti",
    "internazionale": "inter",
    "intermilan": "inter",
    "internazionalemilano": "inter",
    "bayernmunchen": "bayernmunich",
    "tottenhamhotspur": "tottenham",
    "spurs": "tottenham",
    "wolverhamptonwanderers": "wolves",
    "wolverhampton": "wolves",
    "brightonhovealbion": "brighton",
    "nottinghamforest": "nottmforest",
    "sportingcp": "sportinglisbon",
    "borussiamonchengladbach": "gladbach",
    "monchengladbach": "gladbach",
}


def _strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.translate(_TRANSLIT))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold_team_name(name: str) -> str:
    """
    Fold a display name into a comparison key.

    lowercase -> transliterate/strip diacritics -> drop one leading and one
    trailing club affix token -> drop non-alphanumerics -> alias table.
    """
    text = _strip_diacritics((name or "").strip().lower())
    tokens = [t for t in _NON_ALNUM_RE.split(text) if t]
    if len(tokens) > 1 and tokens[0] in CLUB_AFFIXES:
        tokens = tokens[1:]
    if len(tokens) > 1 and tokens[-1] in CLUB_AFFIXES:
        tokens = tokens[:-1]
    folded = "".join(tokens)
    return TEAM_ALIASES.get(folded, folded)


def sides_match(a: str, b: str) -> bool:
    """
    Whether two folded names plausibly denote the same club.

    True when the first three characters agree, or either name contains the
    other's four-character prefix. Empty keys never match.
    """
    if not a or not b:
        return False
    if a[:3] == b[:3]:
        return True
    return b[:4] in a or a[:4] in b
