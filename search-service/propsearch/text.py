import re
import unicodedata
from typing import List, Optional

_WS = re.compile(r"\s+")


def normalize(s: Optional[str], keep: str = "") -> str:
    """
    Lowercase, strip diacritics, turn punctuation into spaces and collapse whitespace.

    `keep` lists punctuation characters that must survive (price cues such as "<=").
    """
    if not s:
        return ""
    s = unicodedata.normalize("NFD", s.lower())
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = "".join(ch if ch.isalnum() or ch.isspace() or ch in keep else " " for ch in s)
    return _WS.sub(" ", s).strip()


def tokenize(s: Optional[str]) -> List[str]:
    return [t for t in normalize(s).split(" ") if t]
