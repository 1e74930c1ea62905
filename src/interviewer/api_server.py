"""
FastAPI service layer for the Interviewer flashcard app.

Exposes the category list, practice sessions, the Groq chat relay,
card explanations and a metrics snapshot. The question bank CSV is
served as a static file under /data.

Run with:
    uvicorn interviewer.api_server:app --host 0.0.0.0 --port 8000
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from .catalog import CategoryCatalog, CategoryLoadTimeout, build_catalog
from .chat_relay import ChatRelay, RelayError
from .config import API_THREAD_POOL_WORKERS, DATA_DIR, PRACTICE_SESSION_LIMIT
from .explanations import request_explanation
from .metrics import metrics_collector
from .observability import get_logger
from .practice import PracticeSession, PracticeSessionStore

logger = get_logger(__name__)

NO_QUESTIONS_DETAIL = "No questions found for this domain"
TIMEOUT_DETAIL = "Loading timeout. Please try again."
INVALID_BODY_ERROR = "Request body must be a JSON object"
RELAY_PATHS = frozenset({"/api/chat", "/api/explain"})


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    # Both left loose so malformed input gets the relay's {error} body.
    messages: Any = None
    categories: Any = None


class ChatResponse(BaseModel):
    message: str


class ExplainRequest(BaseModel):
    question: Any = None
    answer: Any = None
    language: Any = "en"


class Category(BaseModel):
    id: str
    name: str
    icon: str
    count: int


class CategoriesResponse(BaseModel):
    categories: list[Category]


class Card(BaseModel):
    domain: str
    question: str
    answer: str
    difficulty: str = ""


class PracticeCardResponse(BaseModel):
    session_id: str
    domain: str
    name: str
    position: int
    total: int
    progress: str
    card: Card


# ---------------------------------------------------------------------------
# Application state populated at startup
# ---------------------------------------------------------------------------

_state: dict[str, Any] = {}

# Thread pool for running CSV loads and Groq calls off the event loop.
_executor = ThreadPoolExecutor(max_workers=API_THREAD_POOL_WORKERS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the catalog, relay and session store once at startup."""
    _state.setdefault("catalog", build_catalog())
    _state.setdefault("relay", ChatRelay())
    _state.setdefault("sessions", PracticeSessionStore(max_size=PRACTICE_SESSION_LIMIT))
    logger.info("api_startup", source=_state["catalog"].source.location)

    yield  # Application is running.

    _state.clear()


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Interviewer API",
    description="Technical interview flashcards with a Groq-backed assistant",
    version="1.0.0",
    lifespan=lifespan,
)
app.mount("/data", StaticFiles(directory=str(DATA_DIR), check_dir=False), name="data")


@app.exception_handler(RelayError)
async def relay_error_handler(_request: Request, exc: RelayError):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Relay routes answer with {error}; everything else keeps FastAPI's 422.
    if request.url.path in RELAY_PATHS:
        return JSONResponse(status_code=400, content={"error": INVALID_BODY_ERROR})
    return await request_validation_exception_handler(request, exc)


async def _run_blocking(fn, *args):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, fn, *args)


def _card_response(session_id: str, session: PracticeSession) -> PracticeCardResponse:
    record = session.current()
    return PracticeCardResponse(
        session_id=session_id,
        domain=session.domain,
        name=session.display_name,
        position=session.position,
        total=session.total,
        progress=session.progress,
        card=Card(**record.to_dict()),
    )


def _get_session(session_id: str) -> PracticeSession:
    session = _state["sessions"].get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Practice session not found")
    return session


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/api/categories", response_model=CategoriesResponse)
async def categories_endpoint():
    """Return display-ready categories, from cache when still fresh."""
    catalog: CategoryCatalog = _state["catalog"]
    try:
        categories = await catalog.load_categories(_executor)
    except CategoryLoadTimeout as exc:
        raise HTTPException(status_code=504, detail=TIMEOUT_DETAIL) from exc
    return CategoriesResponse(categories=[Category(**item.to_dict()) for item in categories])


@app.post("/api/practice/{domain}/sessions", response_model=PracticeCardResponse)
async def start_practice_endpoint(domain: str):
    """Shuffle the domain's cards into a new session and return the first one."""
    catalog: CategoryCatalog = _state["catalog"]
    try:
        records = await catalog.load_records(_executor)
    except CategoryLoadTimeout as exc:
        raise HTTPException(status_code=504, detail=TIMEOUT_DETAIL) from exc
    session = PracticeSession(records, domain)
    if session.is_empty:
        raise HTTPException(status_code=404, detail=NO_QUESTIONS_DETAIL)
    session_id = _state["sessions"].add(session)
    logger.info("practice_session_started", domain=domain, cards=session.total)
    return _card_response(session_id, session)


@app.get("/api/practice/sessions/{session_id}", response_model=PracticeCardResponse)
async def current_card_endpoint(session_id: str):
    return _card_response(session_id, _get_session(session_id))


@app.post("/api/practice/sessions/{session_id}/next", response_model=PracticeCardResponse)
async def next_card_endpoint(session_id: str):
    session = _get_session(session_id)
    session.advance()
    return _card_response(session_id, session)


@app.post("/api/practice/sessions/{session_id}/previous", response_model=PracticeCardResponse)
async def previous_card_endpoint(session_id: str):
    session = _get_session(session_id)
    session.retreat()
    return _card_response(session_id, session)


@app.post("/api/chat", response_model=ChatResponse)
async def chat_endpoint(request: ChatRequest):
    """Relay the transcript to Groq; navigation directives are left in the text."""
    relay: ChatRelay = _state["relay"]
    message = await _run_blocking(relay.relay, request.messages, request.categories)
    return ChatResponse(message=message)


@app.post("/api/explain", response_model=ChatResponse)
async def explain_endpoint(request: ExplainRequest):
    relay: ChatRelay = _state["relay"]
    message = await _run_blocking(
        request_explanation, relay, request.question, request.answer, request.language
    )
    return ChatResponse(message=message)


@app.get("/api/metrics")
async def metrics_endpoint():
    """Return aggregated relay metrics."""
    return metrics_collector.get_summary()
