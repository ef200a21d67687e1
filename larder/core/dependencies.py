"""
Core dependencies for route protection and service wiring
"""

from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from larder.core.errors import ServiceError, UnauthorizedError
from larder.core.user_directory import UserDirectory
from larder.database.supabase_client import get_supabase, get_service_supabase
from larder.modules.auth.service import AuthService
from larder.modules.recipes.openrouter_client import OpenRouterClient
from supabase import Client
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

# auto_error=False so a missing header renders as our 401 envelope
security = HTTPBearer(auto_error=False)


def get_auth_service(
    supabase: Client = Depends(get_supabase),
    admin_client: Client = Depends(get_service_supabase),
) -> AuthService:
    return AuthService(supabase, admin_client)


def get_current_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing bearer token")
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict:
    """Extract current user info from JWT token"""
    return auth_service.get_current_user(token)


def get_user_directory(admin_client: Client = Depends(get_service_supabase)) -> UserDirectory:
    return UserDirectory(admin_client)


def get_ai_client(request: Request) -> OpenRouterClient:
    """The OpenRouter client built at startup and kept on app.state."""
    client = getattr(request.app.state, "ai_client", None)
    if client is None:
        logger.error("AI client requested but OPENROUTER_API_KEY is not configured")
        raise ServiceError("AI client not configured")
    return client
