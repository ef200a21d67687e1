import hashlib
import logging
import time
from supabase import Client
from larder.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
)
from larder.config.settings import settings
from larder.core.errors import (
    EmailAlreadyRegisteredError, InvalidCredentialsError, ServiceError, UnauthorizedError
)
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


class AuthService:
    def __init__(self, supabase: Client, admin_client: Optional[Client] = None):
        self.supabase = supabase
        self.admin_client = admin_client

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """Register a new user using Supabase Auth"""
        try:
            auth_response = self.supabase.auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
            })
        except Exception as e:
            error_message = str(e).lower()
            if "already registered" in error_message or "already exists" in error_message:
                raise EmailAlreadyRegisteredError()
            logger.error(f"Signup error: {e}")
            raise ServiceError(f"Registration failed: {e}")

        if not auth_response.user:
            raise ServiceError("Sign up returned no user")

        return RegisterResponse(
            user_id=auth_response.user.id,
            email=auth_response.user.email or register_data.email,
            message="Registration successful. Please check your email to confirm your account."
        )

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Authenticate user using Supabase Auth. Never reveals which credential was wrong."""
        try:
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password
            })
        except Exception as e:
            logger.info(f"Login failed: {e}")
            raise InvalidCredentialsError()

        if not auth_response.user or not auth_response.session:
            raise InvalidCredentialsError()

        return TokenResponse(
            access_token=auth_response.session.access_token,
            refresh_token=auth_response.session.refresh_token,
            token_type="bearer",
            user_id=auth_response.user.id,
            email=auth_response.user.email or login_data.email
        )

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.monotonic()
        if cache_key in _AUTH_USER_CACHE:
            user_data, expiry = _AUTH_USER_CACHE[cache_key]
            if now < expiry:
                return user_data
            del _AUTH_USER_CACHE[cache_key]
        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            logger.info(f"Token rejected by Supabase Auth: {e}")
            raise UnauthorizedError("Invalid or expired token")
        if not user_response or not user_response.user:
            raise UnauthorizedError("Invalid or expired token")
        user = user_response.user
        user_data = {
            "id": user.id,
            "email": user.email,
            "user_metadata": user.user_metadata or {},
            "app_metadata": user.app_metadata or {},
            "created_at": user.created_at,
            "updated_at": user.updated_at
        }
        if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
            _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
        return user_data

    def logout(self, token: str) -> bool:
        """Logout user using Supabase Auth"""
        _AUTH_USER_CACHE.pop(hashlib.sha256(token.encode()).hexdigest(), None)
        try:
            # Supabase Auth tokens are stateless JWTs, so logout is mainly client-side
            self.supabase.auth.sign_out()
            return True
        except Exception as e:
            logger.warning(f"Logout error: {e}")
            return False

    def request_password_reset(self, email: str) -> None:
        """Send a recovery email. Errors are logged and swallowed to prevent account enumeration."""
        try:
            self.supabase.auth.reset_password_for_email(
                email, {"redirect_to": f"{settings.site_url}/auth/callback"}
            )
        except Exception as e:
            logger.warning(f"Forgot password error: {e}")

    def reset_password(self, user_id: str, new_password: str) -> None:
        """Set a new password for the user holding a recovery session (requires service role key)"""
        if self.admin_client is None:
            raise ServiceError("Service role client not configured")
        try:
            response = self.admin_client.auth.admin.update_user_by_id(
                user_id, {"password": new_password}
            )
        except Exception as e:
            raise ServiceError(f"Failed to update password: {e}")
        if not response.user:
            raise ServiceError("Password update returned no user")
