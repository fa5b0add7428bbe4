from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from psychiki.services.profile_service import ProfileService
from psychiki.services.session_service import current_account_id

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.patch("")
def update_profile(request: Request, payload: dict, account_id: int = Depends(current_account_id)):
    profiles: ProfileService = request.app.state.profile_service
    return profiles.update_profile(account_id, payload)
