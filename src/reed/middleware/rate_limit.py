import time
from dataclasses import dataclass

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from reed.middleware.cors import ROUTE_CORS_HEADERS

log = structlog.get_logger()


# Rate limit rules as a list so we can have multiple rules for the same path.
# Rules are matched top-to-bottom; the first matching rule wins.
RATE_LIMIT_RULES = [
    {
        "path": "/api/create-charge",
        "limit": 10,
        "window": 3600,
        "method": "POST",
    },
    {
        "path": "/api/signup-guard",
        "limit": 20,
        "window": 3600,
        "method": "POST",
    },
    {
        "path": "/api/send-email",
        "limit": 10,
        "window": 3600,
        "method": "POST",
    },
    {
        "path": "/api/update-api-key",
        "limit": 5,
        "window": 900,
    },
]

SKIP_PATHS = {"/health", "/docs", "/openapi.json", "/redoc", "/api/coinbase-webhook"}


@dataclass
class RateLimitResult:
    """Holds the outcome of a sliding-window rate limit check."""

    current_count: int
    limit: int
    window: int
    reset_at: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current_count)

    @property
    def exceeded(self) -> bool:
        return self.current_count > self.limit


def _find_matching_rule(path: str, method: str) -> dict | None:
    """Return the first rate limit rule that matches the request path and method."""
    for rule in RATE_LIMIT_RULES:
        if not path.startswith(rule["path"]):
            continue
        required_method = rule.get("method")
        if required_method and required_method.upper() != method.upper():
            continue
        return rule
    return None


def get_client_ip(request: Request) -> str:
    """Extract the client IP.

    Checked in order: the edge proxy's connection header, the first
    X-Forwarded-For entry, Client-IP, then the socket peer.
    """
    edge_ip = request.headers.get("x-nf-client-connection-ip")
    if edge_ip:
        return edge_ip.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    client_ip = request.headers.get("client-ip")
    if client_ip:
        return client_ip.strip()
    return request.client.host if request.client else "unknown"


async def _check_rate_limit(redis, redis_key: str, rule: dict, request: Request) -> RateLimitResult:
    """Execute the sliding window check against Redis and return the result."""
    now = int(time.time())
    window = rule["window"]

    pipe = redis.pipeline()
    pipe.zremrangebyscore(redis_key, 0, now - window)
    pipe.zadd(redis_key, {f"{now}:{id(request)}": now})
    pipe.zcard(redis_key)
    pipe.expire(redis_key, window)
    results = await pipe.execute()

    return RateLimitResult(
        current_count=results[2],
        limit=rule["limit"],
        window=window,
        reset_at=now + window,
    )


def _add_rate_limit_headers(response: Response, result: RateLimitResult) -> None:
    """Attach X-RateLimit-* headers to a response."""
    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    response.headers["X-RateLimit-Reset"] = str(result.reset_at)


def _build_429_response(result: RateLimitResult, path: str) -> JSONResponse:
    """Create a 429 Too Many Requests response with rate limit headers.

    Browser-facing routes keep their CORS headers so the envelope stays readable.
    """
    response = JSONResponse(
        status_code=429,
        content={"error": "Too many requests. Please try again later."},
        headers=ROUTE_CORS_HEADERS.get(path),
    )
    _add_rate_limit_headers(response, result)
    response.headers["Retry-After"] = str(result.window)
    return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-backed sliding window rate limiter. Fails open when Redis is down."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        rule = _find_matching_rule(request.url.path, request.method)
        if rule is None:
            return await call_next(request)

        identifier = get_client_ip(request)
        redis_key = f"ratelimit:{rule['path']}:{identifier}"

        try:
            redis = request.app.state.redis
            result = await _check_rate_limit(redis, redis_key, rule, request)
        except Exception as exc:
            log.warning("rate_limit_redis_error", error=str(exc), path=request.url.path)
            return await call_next(request)

        if result.exceeded:
            log.warning(
                "rate_limit_exceeded",
                path=request.url.path,
                identifier=identifier,
                limit=result.limit,
                count=result.current_count,
            )
            return _build_429_response(result, request.url.path)

        response = await call_next(request)
        _add_rate_limit_headers(response, result)
        return response
