"""
JSON API for the growth engine.

Run with:
    uvicorn squadgrowth.web.main:app --reload
"""

import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from squadgrowth.config import settings
from squadgrowth.db.session import get_db
from squadgrowth.errors import InvalidSubmissionError, NotFoundError, PersistenceError
from squadgrowth.logging_config import setup_logging
from squadgrowth.schemas import MatchDateUpdate, StatSubmission
from squadgrowth.services import roster, submissions
from squadgrowth.services.feedback import FeedbackSuggester

logger = logging.getLogger(__name__)

app = FastAPI(title="Squadgrowth")


@lru_cache
def get_suggester() -> FeedbackSuggester:
    """One Gemini client per process."""
    return FeedbackSuggester.from_settings()


# =============================================================================
# Error mapping
# =============================================================================

@app.exception_handler(InvalidSubmissionError)
async def invalid_submission_handler(request: Request, exc: InvalidSubmissionError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": str(exc), "errors": exc.field_errors},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are submission errors too, so 400 rather than 422."""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid stat submission", "errors": errors},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"success": False, "message": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})


# =============================================================================
# Reviews
# =============================================================================

@app.post("/api/reviews")
def api_submit_review(
    submission: StatSubmission,
    db: Session = Depends(get_db),
    suggester: FeedbackSuggester = Depends(get_suggester),
):
    """Submit (or resubmit) a player's stats for a match."""
    result = submissions.submit_match_stats(
        db,
        submission.player_id,
        submission.match_id,
        submission.to_stat_line(),
        suggester=suggester,
    )
    return {"success": True, "data": result.to_dict()}


@app.get("/api/reviews/match/{match_id}")
def api_match_reviews(match_id: int, db: Session = Depends(get_db)):
    reviews = submissions.get_match_reviews(db, match_id)
    return {"success": True, "data": reviews, "count": len(reviews)}


@app.get("/api/reviews/{player_id}/{match_id}")
def api_player_match_stats(player_id: int, match_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": submissions.get_player_match_stats(db, player_id, match_id)}


# =============================================================================
# Players
# =============================================================================

@app.get("/api/players/{player_id}/growth")
def api_growth_history(player_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": submissions.get_growth_history(db, player_id)}


@app.get("/api/players/{player_id}/summary")
def api_player_summary(player_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": submissions.get_player_summary(db, player_id)}


@app.post("/api/teams/{team_id}/players/{player_id}")
def api_attach_player(team_id: int, player_id: int, db: Session = Depends(get_db)):
    """Attach a player to a team; the first attachment creates the initial snapshot."""
    player, created = roster.attach_player_to_team(db, player_id, team_id)
    db.commit()
    return {
        "success": True,
        "data": {"player_id": player.id, "team_id": team_id, "initial_snapshot_created": created},
    }


# =============================================================================
# Matches
# =============================================================================

@app.patch("/api/matches/{match_id}")
def api_update_match_date(match_id: int, body: MatchDateUpdate, db: Session = Depends(get_db)):
    player_ids = submissions.update_match_date(db, match_id, body.match_date)
    return {"success": True, "data": {"match_id": match_id, "rechained_player_ids": player_ids}}


@app.delete("/api/matches/{match_id}")
def api_delete_match(match_id: int, db: Session = Depends(get_db)):
    player_ids = submissions.delete_match(db, match_id)
    return {"success": True, "data": {"match_id": match_id, "rechained_player_ids": player_ids}}


@app.get("/health")
def health():
    return {"status": "ok", "ai_suggestions": settings.ai_suggestions_enabled}


if __name__ == "__main__":
    import uvicorn

    setup_logging()
    uvicorn.run(
        "squadgrowth.web.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
