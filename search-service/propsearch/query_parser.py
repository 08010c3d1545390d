"""
Free-form query -> ParsedQuery.

Parsing is pure and never raises; `validate_query` is the separate step that
rejects queries breaking the ParsedQuery constraints.
"""

import re
from typing import Optional

from pydantic import ValidationError

from .errors import QueryValidationError
from .location import PRIMARY_CITY, match_barrio, match_city
from .schemas import ParsedQuery, ValidParsedQuery
from .text import normalize, tokenize

STOP_WORDS = {"en", "de", "la", "el", "los", "las", "y", "o", "un", "una", "por", "para", "con", "a", "del"}

# checked in this order, a later hit overwrites an earlier one
OPERATION_WORDS = [
    ("rent", {"alquiler", "alquilo", "alquilar", "rent", "renta", "rental", "lease", "let"}),
    ("sale", {"venta", "vendo", "comprar", "compra", "sale", "buy"}),
    ("temporary", {"temporal", "temporario", "temporaria", "temporary", "shortterm"}),
]

BEDROOM_STEMS = ("habitac", "hab", "dorm", "dormit", "amb", "cuarto", "bedroom", "bed", "room")
_BEDROOMS = re.compile(r"(\d+)\s*(?:" + "|".join(BEDROOM_STEMS) + ")")

# price regexes run over a normalization that keeps these characters
_PRICE_KEEP = "-<>="
# "150 000" is one number (separator dots become spaces), "300000 2" is two
_NUM = r"(\d{1,3}(?: \d{3})+|\d+)"
_RANGE = re.compile(_NUM + r"\s*(?:\b(?:a|y|hasta|to|and|until)\b|-)\s*" + _NUM)
_MAX_ONLY = re.compile(r"(?:\bhasta\b|\bup to\b|<=|<|\bmenos de\b|\bless than\b|\bmax\b)\s*" + _NUM)
_MIN_ONLY = re.compile(r"(?:\bdesde\b|\bfrom\b|>=|>|\bmas de\b|\bmore than\b|\bmin\b)\s*" + _NUM)

PRICE_WORDS = {"hasta", "desde", "menos", "mas", "up", "to", "less", "more", "than", "from",
               "until", "and", "max", "min"}

KEYWORDS = set().union(*(words for _, words in OPERATION_WORDS)) | PRICE_WORDS | set(BEDROOM_STEMS) | {
    "habitacion", "habitaciones", "dormitorio", "dormitorios", "ambiente", "ambientes",
    "cuartos", "bedrooms", "beds", "rooms", "de", "a", "en",
}

_DIGITS = re.compile(r"^\d+$")


def _to_num(s: Optional[str]) -> Optional[int]:
    digits = re.sub(r"\D", "", s or "")
    if not digits:
        return None
    # "0" carries no price information either
    return int(digits) or None


def _is_keyword(token: str) -> bool:
    if token in KEYWORDS:
        return True
    return any(token.startswith(stem) for stem in ("habitac", "dormit", "ambient"))


def parse_query(raw: Optional[str]) -> ParsedQuery:
    q = normalize(raw)
    tokens = [t for t in tokenize(raw) if t not in STOP_WORDS]
    token_set = set(tokens)

    operation = None
    for op, words in OPERATION_WORDS:
        if token_set & words:
            operation = op

    m = _BEDROOMS.search(q)
    bedrooms = int(m.group(1)) if m else None

    price_min = price_max = None
    pq = normalize(raw, keep=_PRICE_KEEP)
    rng = _RANGE.search(pq)
    if rng:
        price_min, price_max = _to_num(rng.group(1)), _to_num(rng.group(2))
    else:
        hi = _MAX_ONLY.search(pq)
        if hi:
            price_max = _to_num(hi.group(1))
        lo = _MIN_ONLY.search(pq)
        if lo:
            price_min = _to_num(lo.group(1))

    city = match_city(q)
    barrio = match_barrio(q)
    if barrio and not city:
        city = PRIMARY_CITY

    location_tokens = [t for t in tokens if not _DIGITS.match(t) and not _is_keyword(t)]

    return ParsedQuery(
        text=" ".join(tokens),
        operation=operation,
        priceMin=price_min,
        priceMax=price_max,
        bedrooms=bedrooms,
        city=city,
        barrio=barrio,
        locationTokens=location_tokens,
    )


def validate_query(parsed: ParsedQuery) -> ValidParsedQuery:
    try:
        return ValidParsedQuery.model_validate(parsed.present())
    except ValidationError as e:
        issues = [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in e.errors()]
        raise QueryValidationError(issues) from e


def parse_and_validate(raw: Optional[str]) -> ValidParsedQuery:
    return validate_query(parse_query(raw))
