import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from larder.config.settings import settings
from larder.core.errors import register_exception_handlers
from larder.modules.auth import routes as auth_routes
from larder.modules.households import routes as households_routes
from larder.modules.invitations import routes as invitations_routes
from larder.modules.pantry import routes as pantry_routes
from larder.modules.shopping_lists import routes as shopping_lists_routes
from larder.modules.recipes import routes as recipes_routes
from larder.modules.recipes.openrouter_client import OpenRouterClient

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.state.ai_client = None
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)


_SECURITY_HEADERS = [
    (b"X-Content-Type-Options", b"nosniff"),
    (b"X-Frame-Options", b"DENY"),
    (b"Referrer-Policy", b"no-referrer"),
]
_HSTS_HEADER = (b"Strict-Transport-Security", b"max-age=63072000; includeSubDomains")


class SecurityHeadersMiddleware:
    """Appends fixed security headers to every HTTP response."""

    def __init__(self, app, strict_transport: bool = False):
        self.app = app
        self.headers = _SECURITY_HEADERS + ([_HSTS_HEADER] if strict_transport else [])

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend(self.headers)
            await send(message)

        await self.app(scope, receive, send_with_headers)


app.add_middleware(SecurityHeadersMiddleware, strict_transport=settings.is_production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(auth_routes.router, prefix="/api/v1")
app.include_router(households_routes.router, prefix="/api/v1")
app.include_router(invitations_routes.router, prefix="/api/v1")
app.include_router(pantry_routes.router, prefix="/api/v1")
app.include_router(shopping_lists_routes.router, prefix="/api/v1")
app.include_router(recipes_routes.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup")
    if settings.openrouter_api_key:
        app.state.ai_client = OpenRouterClient.from_settings(settings)
        logger.info(f"OpenRouter client ready (model {settings.openrouter_default_model})")
    else:
        logger.warning("OPENROUTER_API_KEY not set; recipe generation is disabled")


@app.on_event("shutdown")
async def shutdown_event():
    if app.state.ai_client is not None:
        app.state.ai_client.session.close()
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": "Welcome to larder-backend", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe; reports whether AI recipe generation is configured."""
    return {"status": "ready", "aiGeneration": app.state.ai_client is not None}
