# api/schemas.py

from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class CandidateSchema(BaseModel):
    kind: str
    snippet: str
    replacement: str
    context: Optional[str] = None
    explanation: Optional[str] = None
    confidence: Optional[float] = None


class SpanSchema(BaseModel):
    start: int
    end: int
    matched_text: str
    candidate: CandidateSchema


class UnplacedSchema(BaseModel):
    candidate: CandidateSchema
    reason: str


class SuggestionSchema(BaseModel):
    id: str
    kind: str
    title: str = ""
    icon: str = ""
    description: str = ""
    original_text: str
    suggested_text: str
    confidence: float = 0.0
    start: int = Field(ge=0)
    end: int = Field(gt=0)
    region: Optional[str] = None


class AnalyzeRequest(BaseModel):
    text: str
    analysis_types: List[str] = []


class AnalyzeResponse(BaseModel):
    suggestions: List[SuggestionSchema]


class RegionSchema(BaseModel):
    kind: Literal["subject", "intro", "body", "cta", "closing"]
    start: int
    end: int
    text: str
    confidence: float


class ContextAnalyzeResponse(BaseModel):
    regions: List[RegionSchema]
    suggestions: List[SuggestionSchema]


class GrammarCheckRequest(BaseModel):
    text: str
    level: Literal["spelling", "full"] = "full"


class LocateRequest(BaseModel):
    text: str
    candidates: List[CandidateSchema]


class LocateResponse(BaseModel):
    spans: List[SpanSchema]
    unplaced: List[UnplacedSchema]


class ApplyRequest(BaseModel):
    text: str
    accepted: List[SuggestionSchema]
    pending: List[SuggestionSchema] = []


class ApplyResponse(BaseModel):
    text: str
    applied: List[str]
    pending: List[SuggestionSchema]
