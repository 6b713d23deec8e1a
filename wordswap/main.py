import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from wordswap.api.routes import router as api_router
from wordswap.core.config import get_settings
from wordswap.core.request_meta import extract_client_ip
from wordswap.realtime.socket_server import build_socket_app
from wordswap.services.rate_limit_service import rate_limit_service

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

api_app = FastAPI(title=settings.app_name, debug=settings.debug)


class ApiRateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        if not settings.rate_limit_enabled or request.url.path.endswith("/health"):
            return await call_next(request)

        decision = rate_limit_service.check(
            f"api:global:{extract_client_ip(request)}",
            limit=settings.rate_limit_global_limit,
            window_seconds=settings.rate_limit_global_window_seconds,
        )
        headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Reset-Seconds": str(decision.reset_after_seconds),
        }
        if not decision.allowed:
            headers["Retry-After"] = str(decision.retry_after_seconds)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded"},
                headers=headers,
            )

        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value
        return response


api_app.add_middleware(ApiRateLimitMiddleware)
api_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
api_app.include_router(api_router, prefix=settings.api_prefix)

app = build_socket_app(api_app)
logger.info("%s ready (api prefix %s)", settings.app_name, settings.api_prefix)
