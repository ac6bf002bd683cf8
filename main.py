"""
FeedSteer Preference Engine API

FastAPI application exposing:
- POST /messages              → GET_CANDIDATES / SELECT_CANDIDATE dispatch
- GET  /candidates            → current chips + temporary fallback
- POST /candidates/select     → manual chip selection
- /page/*                     → page-mirror ingress (navigation, chip renders, unload)
- /activity/*                 → usage tracking (search, click, video)
- /preferences/*              → global and time-scoped preferences

The page driver mirrors the real page into an InMemoryPage; the engine
reacts to those mutations and the driver reads the resulting selection back
from GET /page.
"""

from contextlib import asynccontextmanager
import logging
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from redis.exceptions import RedisError

from core import __version__
from core.config import EngineConfig
from core.engine import PreferenceEngine
from core.exceptions import PreferenceConflict, PreferenceNotFound, StoreUnavailable
from core.page import InMemoryPage
from core.schemas.inputs import (
    CandidateInsertPayload,
    GlobalPreferencePayload,
    NavigationPayload,
    SearchPayload,
    SelectCandidateMessage,
    TimePreference,
    TimePreferenceUpdate,
    VideoClickPayload,
    parse_message,
)
from core.schemas.outputs import (
    GetCandidatesResponse,
    GlobalPreferenceResponse,
    PageSnapshot,
    SelectCandidateResponse,
    TimePreferencesResponse,
)
from persistence.connection import get_redis_client
from persistence.event_logger import EventLogger
from persistence.preference_store import PreferenceStore


load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application State
# =============================================================================

class AppState:
    """Application state container."""
    engine: Optional[PreferenceEngine] = None


state = AppState()


def _connect_store() -> PreferenceStore:
    try:
        client = get_redis_client()
    except (RedisError, ValueError) as e:
        logger.warning(f"Redis unavailable, running without stored preferences: {e}")
        client = None
    return PreferenceStore(client)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting FeedSteer Preference Engine...")
    config = EngineConfig.from_env()
    store = _connect_store()
    analytics = EventLogger.from_env(user_id_provider=store.get_user_id)
    store.on_user_created = analytics.log_first_run
    logger.info(f"Analytics user id: {store.get_user_id()}")
    state.engine = PreferenceEngine.create(InMemoryPage(), store, analytics, config)
    state.engine.start()
    logger.info("FeedSteer Preference Engine ready")

    yield

    # Shutdown
    logger.info("Shutting down FeedSteer Preference Engine...")
    await state.engine.stop()
    state.engine = None


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="FeedSteer Preference Engine",
    description="Applies category preferences to dynamically rendered pages",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # The page driver runs inside the browser
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _engine() -> PreferenceEngine:
    if state.engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Engine not started"
        )
    return state.engine


def _snapshot(engine: PreferenceEngine) -> PageSnapshot:
    page = engine.page
    return PageSnapshot(
        title=page.title,
        candidates=engine.controller.registry.list_candidates(),
        selected=engine.controller.registry.current_selection(),
        visible=page.visible,
        selection_actions=page.selection_actions,
    )


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    engine = state.engine
    return {
        "status": "healthy",
        "version": __version__,
        "store": bool(engine and engine.store.client is not None),
        "analytics": bool(engine and engine.analytics.enabled),
    }


# =============================================================================
# Messaging
# =============================================================================

@app.post("/messages")
async def handle_message(payload: Dict[str, Any]):
    """
    Dispatch a tagged message.

    - {"type": "GET_CANDIDATES"}
    - {"type": "SELECT_CANDIDATE", "text": ..., "clear_temporary_fallback": ...}
    """
    try:
        message = parse_message(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False)
        )
    return _engine().controller.handle_message(message)


@app.get("/candidates", response_model=GetCandidatesResponse)
async def get_candidates():
    """Current chips, plus the substitute chosen by the last fuzzy match."""
    return _engine().controller.list_candidates()


@app.post("/candidates/select", response_model=SelectCandidateResponse)
async def select_candidate(payload: SelectCandidateMessage):
    """Select a chip on the user's behalf."""
    success = _engine().controller.select(payload.text, payload.clear_temporary_fallback)
    return SelectCandidateResponse(success=success)


# =============================================================================
# Page Mirror Ingress
# =============================================================================

@app.get("/page", response_model=PageSnapshot)
async def get_page():
    return _snapshot(_engine())


@app.post("/page/navigate", response_model=PageSnapshot)
async def navigate(payload: NavigationPayload):
    """The page title changed (SPA navigation)."""
    engine = _engine()
    engine.page.navigate(payload.title)
    return _snapshot(engine)


@app.post("/page/candidates", response_model=PageSnapshot)
async def insert_candidates(payload: CandidateInsertPayload):
    """The chip bar was rendered."""
    engine = _engine()
    engine.page.insert_candidates(payload.candidates, payload.selected)
    return _snapshot(engine)


@app.post("/page/teardown", status_code=status.HTTP_204_NO_CONTENT)
async def teardown():
    """The page is unloading: close the usage session."""
    _engine().controller.teardown()


# =============================================================================
# Activity Tracking
# =============================================================================

@app.post("/activity/search", status_code=status.HTTP_204_NO_CONTENT)
async def track_search(payload: SearchPayload):
    _engine().controller.sessions.record_search(payload.query)


@app.post("/activity/click", status_code=status.HTTP_204_NO_CONTENT)
async def track_click():
    _engine().controller.sessions.record_click()


@app.post("/activity/video", status_code=status.HTTP_204_NO_CONTENT)
async def track_video(payload: VideoClickPayload):
    _engine().controller.sessions.record_video_click(payload.video_id, payload.title)


# =============================================================================
# Preferences
# =============================================================================

@app.get("/preferences/global", response_model=GlobalPreferenceResponse)
async def get_global_preference():
    return GlobalPreferenceResponse(value=_engine().store.get_global_preference())


@app.put("/preferences/global", response_model=GlobalPreferenceResponse)
async def put_global_preference(payload: GlobalPreferencePayload):
    engine = _engine()
    try:
        engine.store.set_global_preference(payload.value)
    except StoreUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return GlobalPreferenceResponse(value=engine.store.get_global_preference())


@app.get("/preferences/time", response_model=TimePreferencesResponse)
async def list_time_preferences():
    store = _engine().store
    return TimePreferencesResponse(
        preferences=store.get_time_preferences(),
        active=store.get_active_time_scoped_preference(),
    )


@app.post(
    "/preferences/time",
    response_model=TimePreference,
    status_code=status.HTTP_201_CREATED,
)
async def create_time_preference(payload: TimePreference):
    engine = _engine()
    try:
        saved = engine.store.save_time_preference(payload)
    except PreferenceConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StoreUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    engine.scheduler.check_now()
    return saved


@app.patch("/preferences/time/{preference_id}", response_model=TimePreference)
async def update_time_preference(preference_id: str, payload: TimePreferenceUpdate):
    engine = _engine()
    try:
        updated = engine.store.update_time_preference(preference_id, payload)
    except PreferenceNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PreferenceConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False)
        )
    except StoreUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    engine.scheduler.check_now()
    return updated


@app.delete("/preferences/time/{preference_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_preference(preference_id: str):
    engine = _engine()
    try:
        engine.store.delete_time_preference(preference_id)
    except PreferenceNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    engine.scheduler.check_now()


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
