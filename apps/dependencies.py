"""FastAPI wiring shared by the portal and admin apps"""
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shared.config.redis import SessionStore
from shared.errors import PaperboyError
from shared.services.auth_service import AuthSession, resolve_session

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_session_store(request: Request) -> SessionStore:
    store = getattr(request.app.state, "session_store", None)
    return store or SessionStore()


async def current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    sessions: SessionStore = Depends(get_session_store),
) -> AuthSession:
    return await resolve_session(sessions, credentials.credentials)


async def verify_admin(auth: AuthSession = Depends(current_session)) -> AuthSession:
    """Role comes from the session and is fixed until the admin signs in again"""
    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return auth


async def paperboy_error_handler(request: Request, exc: PaperboyError):
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(log_level, f"{request.method} {request.url.path} failed: {exc.code} {exc.context}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.to_dict(), "detail": exc.message},
    )
