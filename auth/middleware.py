"""
Supabase client and local JWT validation for the household tools backend
"""
import jwt
from fastapi import HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
import logging
import os
from supabase import create_client, Client
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

# JWT settings
JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

logger = logging.getLogger(__name__)


class AuthMiddleware:
    def __init__(self):
        supabase_url = os.getenv("SUPABASE_URL")
        supabase_key = os.getenv("SUPABASE_SERVICE_KEY")

        if not supabase_url:
            raise ValueError("SUPABASE_URL environment variable is required")
        if not supabase_key:
            raise ValueError("SUPABASE_SERVICE_KEY environment variable is required")
        if not JWT_SECRET:
            raise ValueError("SUPABASE_JWT_SECRET environment variable is required")

        self.supabase: Client = create_client(supabase_url, supabase_key)
        logger.info("Supabase client initialized with local JWT validation")

    async def verify_token(self, credentials: HTTPAuthorizationCredentials) -> dict:
        """
        Verify a Supabase session token locally and return the user it names
        """
        try:
            payload = jwt.decode(
                credentials.credentials,
                JWT_SECRET,
                algorithms=[JWT_ALGORITHM],
                audience=JWT_AUDIENCE
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired"
            )
        except jwt.InvalidAudienceError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token audience"
            )
        except jwt.PyJWTError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token: {str(e)}"
            )

        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing user information"
            )

        return {"id": user_id, "email": payload.get("email")}


# Global auth middleware instance - created on first use
auth_middleware = None


def get_auth_middleware():
    """Get or create auth middleware instance"""
    global auth_middleware
    if auth_middleware is None:
        auth_middleware = AuthMiddleware()
    return auth_middleware
