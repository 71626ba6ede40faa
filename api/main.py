import os
import json
import logging
import logging.config
from dataclasses import asdict
from typing import List

import yaml
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from api.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ApplyRequest,
    ApplyResponse,
    CandidateSchema,
    ContextAnalyzeResponse,
    GrammarCheckRequest,
    LocateRequest,
    LocateResponse,
    RegionSchema,
    SpanSchema,
    SuggestionSchema,
    UnplacedSchema,
)
from core.cache import RateLimitExceeded
from core.config import DEFAULT_CONFIG_PATH, load_config
from core.locate import locate
from core.models import Candidate, Suggestion
from core.oracle import OracleError, OracleNotConfigured
from core.pipeline import WritingAssistant
from core.transform import apply_suggestions, shift_after_edit
from core.validators import InputError


def setup_logging():
    cfg_path = os.path.join("configs", "logging.yaml")
    if os.path.exists(cfg_path):
        try:
            with open(cfg_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
            os.makedirs("logs", exist_ok=True)
            logging.config.dictConfig(config)
        except Exception as e:
            print(f"[logging] Failed to load logging.yaml: {e}")
            logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.INFO)


setup_logging()
logger = logging.getLogger("api")

app = FastAPI(
    title="Writing Assistant",
    version="0.1.0",
    description="Model-backed writing suggestions placed on exact document offsets.",
)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_assistant: WritingAssistant | None = None


def get_assistant() -> WritingAssistant:
    global _assistant
    if _assistant is None:
        path = os.getenv("ASSISTANT_CONFIG", DEFAULT_CONFIG_PATH)
        _assistant = WritingAssistant(load_config(path))
    return _assistant


def client_id(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, InputError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RateLimitExceeded):
        return HTTPException(status_code=429, detail=str(e))
    if isinstance(e, OracleNotConfigured):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=502, detail="Failed to analyze text")


def suggestion_schema(s: Suggestion) -> SuggestionSchema:
    return SuggestionSchema(**asdict(s))


def candidate_schema(c: Candidate) -> CandidateSchema:
    return CandidateSchema(
        kind=c.kind,
        snippet=c.snippet,
        replacement=c.replacement,
        context=c.context,
        explanation=c.explanation,
        confidence=c.confidence_raw,
    )


@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    req: AnalyzeRequest,
    request: Request,
    assistant: WritingAssistant = Depends(get_assistant),
) -> AnalyzeResponse:
    logger.info("Received /analyze request")
    try:
        suggestions = await assistant.analyze(req.text, req.analysis_types, client_id(request))
    except (InputError, RateLimitExceeded, OracleError) as e:
        logger.warning("/analyze failed: %s", e)
        raise to_http_error(e) from e
    return AnalyzeResponse(suggestions=[suggestion_schema(s) for s in suggestions])


@app.post("/analyze/parallel", response_model=AnalyzeResponse)
async def analyze_parallel(
    req: AnalyzeRequest,
    request: Request,
    assistant: WritingAssistant = Depends(get_assistant),
) -> AnalyzeResponse:
    logger.info("Received /analyze/parallel request")
    try:
        suggestions = await assistant.analyze_in_parallel(
            req.text, req.analysis_types, client_id(request)
        )
    except (InputError, RateLimitExceeded, OracleError) as e:
        logger.warning("/analyze/parallel failed: %s", e)
        raise to_http_error(e) from e
    return AnalyzeResponse(suggestions=[suggestion_schema(s) for s in suggestions])


@app.post("/analyze/context", response_model=ContextAnalyzeResponse)
async def analyze_context(
    req: AnalyzeRequest,
    request: Request,
    assistant: WritingAssistant = Depends(get_assistant),
) -> ContextAnalyzeResponse:
    logger.info("Received /analyze/context request")
    try:
        regions, suggestions = await assistant.analyze_with_context(
            req.text, req.analysis_types, client_id(request)
        )
    except (InputError, RateLimitExceeded, OracleError) as e:
        logger.warning("/analyze/context failed: %s", e)
        raise to_http_error(e) from e
    return ContextAnalyzeResponse(
        regions=[RegionSchema(**asdict(r)) for r in regions],
        suggestions=[suggestion_schema(s) for s in suggestions],
    )


@app.post("/grammar/check")
async def grammar_check(
    req: GrammarCheckRequest,
    request: Request,
    assistant: WritingAssistant = Depends(get_assistant),
) -> StreamingResponse:
    logger.info("Received /grammar/check request")
    try:
        stream = assistant.check_grammar_stream(req.text, req.level, client_id(request))
        # Nothing is sent before the first suggestion (or the end of the
        # stream), so a failing model call still gets an error status.
        first = await anext(stream, None)
    except (InputError, RateLimitExceeded, OracleError) as e:
        logger.warning("/grammar/check failed: %s", e)
        raise to_http_error(e) from e

    async def ndjson():
        if first is None:
            return
        yield json.dumps(asdict(first)) + "\n"
        try:
            async for sugg in stream:
                yield json.dumps(asdict(sugg)) + "\n"
        except OracleError as e:
            logger.error("Grammar stream failed: %s", e)

    return StreamingResponse(ndjson(), media_type="application/x-ndjson")


@app.post("/locate", response_model=LocateResponse)
def locate_spans(req: LocateRequest) -> LocateResponse:
    candidates = [
        Candidate(
            kind=c.kind,
            snippet=c.snippet,
            replacement=c.replacement,
            context=c.context,
            explanation=c.explanation,
            confidence_raw=c.confidence,
        )
        for c in req.candidates
    ]
    spans: List[SpanSchema] = []
    unplaced: List[UnplacedSchema] = []
    for result in locate(req.text, candidates):
        cand = candidate_schema(result.candidate)
        if result.span is None:
            unplaced.append(UnplacedSchema(candidate=cand, reason=result.reason or ""))
            continue
        spans.append(
            SpanSchema(
                start=result.span.start,
                end=result.span.end,
                matched_text=result.span.matched_text,
                candidate=cand,
            )
        )
    return LocateResponse(spans=spans, unplaced=unplaced)


@app.post("/apply", response_model=ApplyResponse)
def apply(req: ApplyRequest) -> ApplyResponse:
    accepted = [Suggestion(**s.model_dump()) for s in req.accepted]
    pending = [Suggestion(**s.model_dump()) for s in req.pending]

    text, applied = apply_suggestions(req.text, accepted)
    # Right to left, so each edit's offsets are still in the original coordinates.
    for edit in reversed(applied):
        pending = shift_after_edit(pending, edit)

    return ApplyResponse(
        text=text,
        applied=[s.id for s in applied],
        pending=[suggestion_schema(s) for s in pending],
    )
