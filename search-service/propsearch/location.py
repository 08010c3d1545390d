from typing import Dict, List, Optional

from .text import normalize

# city whose neighborhoods we know about
PRIMARY_CITY = "caba"

# canonical city -> surface forms, scanned in declaration order (first hit wins)
CITY_VARIANTS: Dict[str, List[str]] = {
    "caba": [
        "caba", "capital", "capital federal",
        "ciudad autonoma de buenos aires", "buenos aires", "bs as", "baires",
    ],
    "cordoba": ["cordoba"],
    "rosario": ["rosario"],
    "mendoza": ["mendoza"],
    "la plata": ["la plata"],
    "mar del plata": ["mar del plata"],
}


def _dedupe(xs: List[str]) -> List[str]:
    out: List[str] = []
    for x in xs:
        if x not in out:
            out.append(x)
    return out


BARRIOS_CABA: List[str] = _dedupe([normalize(b) for b in [
    "palermo", "belgrano", "recoleta", "caballito", "almagro", "flores", "colegiales",
    "nuñez", "nunez", "villa urquiza", "villa crespo", "san telmo", "monserrat",
    "barracas", "boedo", "chacarita", "parque patricios", "parque chacabuco",
    "retiro", "puerto madero",
]])

_CITY_FORMS = [(city, [normalize(v) for v in forms]) for city, forms in CITY_VARIANTS.items()]


def match_city(text: str) -> Optional[str]:
    """First canonical city with a variant contained in already-normalized `text`."""
    for city, forms in _CITY_FORMS:
        if any(v in text for v in forms):
            return city
    return None


def match_barrio(text: str) -> Optional[str]:
    for b in BARRIOS_CABA:
        if b in text:
            return b
    return None


def infer_location(address: Optional[str]) -> Dict[str, str]:
    """
    Map an address (or listing title) to {"city": ..., "barrio": ...}.

    Both keys are optional; an empty dict means nothing was recognized.
    """
    a = normalize(address)
    if not a:
        return {}

    city = match_city(a)
    if city:
        out = {"city": city}
        if city == PRIMARY_CITY:
            barrio = match_barrio(a)
            if barrio:
                out["barrio"] = barrio
        return out

    # a known barrio implies the primary city even when it was never named
    barrio = match_barrio(a)
    if barrio:
        return {"city": PRIMARY_CITY, "barrio": barrio}
    return {}
