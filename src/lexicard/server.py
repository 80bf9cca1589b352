import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date, datetime
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from ulid import ULID

from lexicard.consts import VERSION
from lexicard.domain.errors import GradingPreconditionError, ImportFailure
from lexicard.domain.models import Grade, QuizMode, RawRow, SessionItem
from lexicard.domain.ports import Clock, VocabRepository, utc_now

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("lexicard.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"lexicard server v{VERSION} starting up...")
    app.state.sessions = {}
    yield
    # Shutdown; live sessions are discarded, graded attempts are already stored.
    logger.info(f"lexicard server shutting down, dropping {len(app.state.sessions)} live sessions")
    app.state.sessions.clear()


app = FastAPI(
    title="lexicard",
    description="Spaced-repetition vocabulary trainer API.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


# ---------------------------------------------------------------------------
# Dependencies (overridable in tests)
# ---------------------------------------------------------------------------


@lru_cache
def get_repo() -> VocabRepository:
    from lexicard.application.config import resolve_config
    from lexicard.application.factory import get_repository

    return get_repository(resolve_config())


def get_clock() -> Clock:
    return utc_now


def get_sessions(request: Request) -> dict:
    if not hasattr(request.app.state, "sessions"):
        request.app.state.sessions = {}
    return request.app.state.sessions


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class RowModel(BaseModel):
    term: str = ""
    translation: str | None = None
    phonetic: str | None = None
    tags_raw: str | None = None
    notes: str | None = None


class ImportRequest(BaseModel):
    batch_label: str
    rows: list[RowModel]


class ImportResponse(BaseModel):
    batch_label: str
    batch_id: str | None
    new_count: int
    updated_count: int
    conflict_count: int
    skipped_count: int
    preview: list[RowModel]
    warnings: list[str]


class SessionRequest(BaseModel):
    size: int | None = Field(default=None, ge=1)
    seed: int | None = None
    preferred_mode: QuizMode | None = None


class ItemModel(BaseModel):
    card_id: str
    term: str
    translation: str | None
    phonetic: str | None
    tags: list[str]
    mode: QuizMode
    reps: int
    interval: int
    next_review: datetime


class SummaryModel(BaseModel):
    attempted: int
    correct: int
    accuracy: int
    remaining: int


class SessionResponse(BaseModel):
    session_id: str
    items: list[ItemModel]
    current: ItemModel | None
    summary: SummaryModel


class GradeRequest(BaseModel):
    grade: Grade
    latency: float = Field(default=0.0, ge=0.0)


class GradeResponse(BaseModel):
    card_id: str
    grade: Grade
    correct: bool
    interval: int
    next_review: datetime
    summary: SummaryModel


class WindowModel(BaseModel):
    days: int
    attempts: int
    correct: int
    accuracy: int
    seconds: float


class TrendModel(BaseModel):
    day: date
    attempts: int
    correct: int
    seconds: float
    due: int


class StatsResponse(BaseModel):
    windows: list[WindowModel]
    trend: list[TrendModel]


def _item_model(item: SessionItem) -> ItemModel:
    return ItemModel(
        card_id=item.card.card_id,
        term=item.card.term,
        translation=item.card.translation,
        phonetic=item.card.phonetic,
        tags=item.card.tags,
        mode=item.mode,
        reps=item.state.reps,
        interval=item.state.interval,
        next_review=item.state.next_review,
    )


def _session_response(session_id: str, session) -> SessionResponse:
    current = None if session.finished else session.queue[session.cursor]
    return SessionResponse(
        session_id=session_id,
        items=[_item_model(i) for i in session.queue],
        current=_item_model(current) if current else None,
        summary=SummaryModel(**asdict(session.summary())),
    )


def _lookup(sessions: dict, session_id: str):
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/import", response_model=ImportResponse)
def import_batch(
    req: ImportRequest,
    repo: VocabRepository = Depends(get_repo),
    clock: Clock = Depends(get_clock),
):
    """
    Import a batch of raw rows, merging duplicates against stored cards.
    """
    from lexicard.application.importer import ImportService

    logger.info(f"Import requested via API: '{req.batch_label}' ({len(req.rows)} rows)")
    rows = [RawRow(**r.model_dump()) for r in req.rows]
    try:
        report = ImportService(repo, clock=clock).import_rows(rows, req.batch_label)
    except ImportFailure as e:
        logger.error(f"Import failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    return ImportResponse(
        batch_label=report.batch_label,
        batch_id=report.batch_id,
        new_count=report.new_count,
        updated_count=report.updated_count,
        conflict_count=report.conflict_count,
        skipped_count=report.skipped_count,
        preview=[RowModel(**asdict(r)) for r in report.preview],
        warnings=report.warnings,
    )


@app.post("/sessions", response_model=SessionResponse)
def create_session(
    req: SessionRequest,
    repo: VocabRepository = Depends(get_repo),
    clock: Clock = Depends(get_clock),
    sessions: dict = Depends(get_sessions),
):
    """
    Compose a practice queue and hold it as a live session.
    """
    import random

    from lexicard.application.config import resolve_config
    from lexicard.application.session import StudySession, compose_session

    config = resolve_config()
    seed = req.seed if req.seed is not None else config.seed
    items = compose_session(
        repo,
        req.size or config.session_size,
        clock(),
        rng=random.Random(seed),
        preferred_mode=req.preferred_mode or config.preferred_mode,
        due_ratio=config.due_ratio,
        learning_ratio=config.learning_ratio,
    )
    session_id = str(ULID())
    session = StudySession(repo, items, clock=clock, reinsert_offset=config.reinsert_offset)
    if session.finished:
        # Nothing to study; the session is not kept.
        return _session_response(session_id, session)
    sessions[session_id] = session
    logger.info(f"Session {session_id} started with {len(items)} items")
    return _session_response(session_id, session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, sessions: dict = Depends(get_sessions)):
    return _session_response(session_id, _lookup(sessions, session_id))


@app.post("/sessions/{session_id}/reveal", response_model=ItemModel)
def reveal_answer(session_id: str, sessions: dict = Depends(get_sessions)):
    session = _lookup(sessions, session_id)
    try:
        return _item_model(session.reveal())
    except GradingPreconditionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.post("/sessions/{session_id}/grade", response_model=GradeResponse)
def grade_item(
    session_id: str,
    req: GradeRequest,
    repo: VocabRepository = Depends(get_repo),
    sessions: dict = Depends(get_sessions),
):
    """
    Grade the current item; 409 if its answer has not been revealed.

    A session whose queue is exhausted is released after its last grade.
    """
    session = _lookup(sessions, session_id)
    try:
        entry = session.grade(req.grade, req.latency)
    except GradingPreconditionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if session.finished:
        sessions.pop(session_id, None)
        logger.info(f"Session {session_id} finished and released")

    state = repo.get_review_state(entry.card_id)
    return GradeResponse(
        card_id=entry.card_id,
        grade=entry.grade,
        correct=entry.correct,
        interval=state.interval,
        next_review=state.next_review,
        summary=SummaryModel(**asdict(session.summary())),
    )


@app.delete("/sessions/{session_id}", response_model=SummaryModel)
def abandon_session(session_id: str, sessions: dict = Depends(get_sessions)):
    """
    Discard a live session. Attempts graded so far stay recorded.
    """
    session = _lookup(sessions, session_id)
    del sessions[session_id]
    logger.info(f"Session {session_id} abandoned")
    return SummaryModel(**asdict(session.summary()))


@app.get("/stats", response_model=StatsResponse)
def get_stats(
    repo: VocabRepository = Depends(get_repo),
    clock: Clock = Depends(get_clock),
):
    from lexicard.application.stats import StatsAggregator

    overview = StatsAggregator(repo, clock=clock).overview()
    return StatsResponse(
        windows=[WindowModel(**asdict(w)) for w in overview.windows],
        trend=[TrendModel(**asdict(t)) for t in overview.trend],
    )
