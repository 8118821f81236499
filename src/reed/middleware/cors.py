from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

SIGNUP_GUARD_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

EMAIL_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

# Browser-facing routes that answer their own preflight and tag every response.
ROUTE_CORS_HEADERS = {
    "/api/signup-guard": SIGNUP_GUARD_CORS_HEADERS,
    "/api/send-email": EMAIL_CORS_HEADERS,
}


class RouteAwareCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that passes routes listed in ROUTE_CORS_HEADERS straight through."""

    def __init__(self, app: ASGIApp, **kwargs) -> None:
        super().__init__(app, **kwargs)
        self.passthrough_app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"] in ROUTE_CORS_HEADERS:
            await self.passthrough_app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)
