from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from shared.config.database import get_db
from shared.config.redis import SessionStore
from shared.services.auth_service import AuthService, IdentityProvider, end_session
from apps.dependencies import get_session_store, security

router = APIRouter()


class ChallengeRequest(BaseModel):
    phone: str


class ChallengeResponse(BaseModel):
    handle: str


class VerifyRequest(BaseModel):
    handle: str
    code: str


class SessionResponse(BaseModel):
    token: str
    subscriber_id: str
    phone_number: str
    role: str


def get_identity_provider(request: Request) -> IdentityProvider:
    provider = getattr(request.app.state, "identity_provider", None)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Phone verification is not configured"
        )
    return provider


@router.post("/challenge", response_model=ChallengeResponse)
async def request_challenge(
    body: ChallengeRequest,
    db: AsyncSession = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    sessions: SessionStore = Depends(get_session_store)
):
    """Send a one-time code to the phone number"""
    handle = await AuthService(db, provider, sessions).request_challenge(body.phone)
    return ChallengeResponse(handle=handle)


@router.post("/verify", response_model=SessionResponse)
async def verify_code(
    body: VerifyRequest,
    db: AsyncSession = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    sessions: SessionStore = Depends(get_session_store)
):
    """Exchange the code for a session token; first sign in creates the subscriber"""
    auth = await AuthService(db, provider, sessions).verify(body.handle, body.code)
    return SessionResponse(
        token=auth.token,
        subscriber_id=auth.subscriber_id,
        phone_number=auth.phone_number,
        role=auth.role
    )


@router.post("/logout")
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    sessions: SessionStore = Depends(get_session_store)
):
    await end_session(sessions, credentials.credentials)
    return {"status": "ok"}
