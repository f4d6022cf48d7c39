from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.exceptions import UnauthenticatedError
from ..core.security import security, verify_token, Identity, TokenPayload
from ..models.user import User
from ..realtime.notifier import ChangeNotifier, get_notifier
from ..services.directory_service import DirectoryService
from ..services.scheduling_service import SchedulingService
from ..stores.directory_store import DirectoryStore

async def get_current_user_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Access token required")

    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise UnauthenticatedError("Invalid or expired token")

    if token_payload.token_type != "access":
        raise UnauthenticatedError("Invalid token type")

    return token_payload

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    try:
        user_id = int(token_payload.sub)
    except (TypeError, ValueError):
        raise UnauthenticatedError("Invalid token payload")

    user = DirectoryStore(db).get_user(user_id)
    if not user:
        raise UnauthenticatedError("User not found")

    return user

async def get_current_identity(
    current_user: User = Depends(get_current_user)
) -> Identity:
    """Verified identity handed to the services."""
    return Identity(
        id=current_user.id,
        role=current_user.role,
        name=current_user.name,
        email=current_user.email
    )

# Service dependencies
def get_scheduling_service(
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
) -> SchedulingService:
    return SchedulingService(db, notifier)

def get_directory_service(
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
) -> DirectoryService:
    return DirectoryService(db, notifier)

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Fixed-window rate limiting for authentication endpoints."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
        return

    if int(current_requests) >= settings.RATE_LIMIT_MAX_REQUESTS:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later."
        )
    redis_client.incr(key)
