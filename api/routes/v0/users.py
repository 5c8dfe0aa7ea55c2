"""
api/routes/v0/users.py -- Identity of the current session.

Routes:
  GET /api/v0/users/me  -- requires a live bearer session
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import UserMeResponse
from auth.dependencies import get_current_principal
from auth.models import Principal

router = APIRouter()


@router.get("/users/me", response_model=UserMeResponse)
async def me(principal: Principal = Depends(get_current_principal)) -> UserMeResponse:
    """Return identity information for the authenticated principal."""
    return UserMeResponse.from_principal(principal)
