from pydantic import BaseModel, Field, conint, confloat, constr, field_validator
from typing import Optional, List, Dict, Any, Literal

Operation = Literal["rent", "sale", "temporary"]


# ===== Parsed query =====
class ParsedQuery(BaseModel):
    """Structured intent extracted from a free-form query. Built by the parser, unchecked."""
    text: str
    operation: Optional[Operation] = None
    priceMin: Optional[float] = None
    priceMax: Optional[float] = None
    bedrooms: Optional[int] = None
    city: Optional[str] = None
    barrio: Optional[str] = None
    locationTokens: List[str] = Field(default_factory=list)

    def present(self) -> Dict[str, Any]:
        """Only the fields that were actually recognized."""
        return self.model_dump(exclude_none=True)


class ValidParsedQuery(BaseModel):
    text: constr(strip_whitespace=True, min_length=2)
    operation: Optional[Operation] = None
    priceMin: Optional[confloat(ge=0)] = None
    priceMax: Optional[confloat(ge=0)] = None
    bedrooms: Optional[conint(ge=0)] = None
    city: Optional[str] = None
    barrio: Optional[str] = None
    locationTokens: List[str] = Field(default_factory=list)

    @field_validator("priceMax")
    @classmethod
    def _price_order(cls, v, info):
        pmin = info.data.get("priceMin")
        if v is not None and pmin is not None and pmin > v:
            raise ValueError("priceMin cannot be greater than priceMax")
        return v


# ===== Listings =====
class Property(BaseModel):
    id: Optional[str] = None
    title: str
    operation: Operation
    price: confloat(ge=0)
    address: Optional[str] = None
    bedrooms: Optional[conint(ge=0)] = None
    bathrooms: Optional[confloat(ge=0)] = None
    description: Optional[str] = None

    @field_validator("operation", mode="before")
    @classmethod
    def _legacy_operation(cls, v):
        # older datasets use "temp"
        if isinstance(v, str) and v.strip().lower() == "temp":
            return "temporary"
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v) if v is not None else None


class Match(BaseModel):
    id: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ===== HTTP =====
class SearchRequest(BaseModel):
    query: constr(strip_whitespace=True, min_length=2)
    topK: Optional[conint(ge=1, le=50)] = None
    minScore: Optional[confloat(ge=0, le=1)] = None


class SearchResponse(BaseModel):
    results: List[Match]


class VoiceSearchResponse(BaseModel):
    text: str
    results: List[Match]


class UpsertRequest(BaseModel):
    properties: List[Property] = Field(min_length=1)


class UpsertResponse(BaseModel):
    status: str = "ok"
    count: int
    ids: List[str]
