from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from lessonflow.services.session_identity import NO_SESSION_MESSAGE, SESSION_HEADER

# API paths that work without a learner session (issuing one)
PUBLIC_API_PATHS = {
    "/api/sessions",
}

# Non-API prefixes that are always public (docs)
PUBLIC_PREFIXES = (
    "/docs",
    "/openapi",
    "/redoc",
)


class SessionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if path.startswith(PUBLIC_PREFIXES):
            return await call_next(request)

        # Allow non-API paths (health check, root)
        if not path.startswith("/api/"):
            return await call_next(request)

        if path in PUBLIC_API_PATHS:
            return await call_next(request)

        # CORS preflight carries no custom headers
        if request.method == "OPTIONS":
            return await call_next(request)

        if request.headers.get(SESSION_HEADER, "").strip():
            return await call_next(request)

        return JSONResponse(status_code=401, content={"detail": NO_SESSION_MESSAGE})
