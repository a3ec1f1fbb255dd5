"""
Request dependencies: current user, Supabase client, clock and cron secret
"""
from datetime import datetime, timezone
import hmac
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from supabase import Client

from config import billing_config
from .middleware import get_auth_middleware

security = HTTPBearer()


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """
    Get current authenticated user
    """
    auth_middleware = get_auth_middleware()
    return await auth_middleware.verify_token(credentials)


def get_supabase() -> Client:
    return get_auth_middleware().supabase


def get_now() -> datetime:
    """The request's notion of "now"; overridden in tests to pin the date."""
    return datetime.now(timezone.utc)


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """
    Only the scheduler, holding CRON_SECRET, may trigger billing jobs
    """
    expected = billing_config.CRON_SECRET
    if not expected or not authorization or not hmac.compare_digest(authorization, f"Bearer {expected}"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
