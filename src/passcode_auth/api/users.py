"""Users router — profile onboarding for accounts held by the identity provider.

Endpoints
---------
GET   /users/exists?email=...  → whether an email can still register
GET   /users                   → profile of the signed-in account
POST  /users                   → create that profile (finishes onboarding)
PATCH /users                   → edit that profile
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from passcode_auth.api.dependencies import get_current_user, get_user_service
from passcode_auth.database.engine import get_session
from passcode_auth.services.identity_provider import IdentityProviderError, IdentityUser
from passcode_auth.services.user_service import (
    ProfileAlreadyExists,
    ProfileNotFound,
    UserService,
)

router = APIRouter(prefix="/users", tags=["users"])


# ── Request / response models ────────────────────────────

class EmailAvailabilityResponse(BaseModel):
    available: bool
    message: str


class CreateUserRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class UpdateUserRequest(BaseModel):
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)


class UserInfo(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


# ── Endpoints ────────────────────────────────────────────

@router.get("/exists", response_model=EmailAvailabilityResponse)
async def check_email(
    email: EmailStr = Query(...),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    """Check whether an email is still free to register."""
    try:
        availability = await service.check_email_availability(email, session)
    except IdentityProviderError as exc:
        raise HTTPException(status_code=500, detail="Failed to check email availability") from exc
    return EmailAvailabilityResponse(
        available=availability.available, message=availability.message
    )


@router.get("", response_model=UserInfo)
async def get_user(
    account: IdentityUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        return await service.get_profile(account, session)
    except ProfileNotFound as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc


@router.post("", response_model=UserInfo, status_code=201)
async def create_user(
    body: CreateUserRequest,
    account: IdentityUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    """Create the profile for the signed-in account."""
    try:
        return await service.create_profile(account, body.first_name, body.last_name, session)
    except ProfileAlreadyExists as exc:
        raise HTTPException(status_code=409, detail="User profile already exists") from exc


@router.patch("", response_model=UserInfo)
async def update_user(
    body: UpdateUserRequest,
    account: IdentityUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        return await service.update_profile(
            account, session, first_name=body.first_name, last_name=body.last_name
        )
    except ProfileNotFound as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
