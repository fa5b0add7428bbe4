from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Request

from psychiki.services.activity_service import ActivityService
from psychiki.services.leaderboard_service import DEFAULT_LIMIT, LeaderboardService
from psychiki.services.session_service import current_account_id

router = APIRouter(prefix="/api/steps", tags=["steps"])


def _activity(request: Request) -> ActivityService:
    return request.app.state.activity_service


@router.post("/sync")
def sync_steps(request: Request, payload: dict, account_id: int = Depends(current_account_id)):
    result = _activity(request).sync_steps(account_id, payload.get("date"), payload.get("steps"))
    return asdict(result)


@router.get("/dashboard")
def dashboard(request: Request, account_id: int = Depends(current_account_id)):
    return asdict(_activity(request).dashboard(account_id))


@router.get("/leaderboard")
def leaderboard(request: Request, limit: str = str(DEFAULT_LIMIT)):
    board: LeaderboardService = request.app.state.leaderboard_service
    return board.top(limit)
