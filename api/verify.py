"""GET /api/verify/{verification_id} - public, unauthenticated integrity check."""

from fastapi import APIRouter, Request, Response

from api.base import success_response
from api.rate_limiter import RateLimiter


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_verify_router(verification_service, rate_limiter: RateLimiter | None = None) -> APIRouter:
    router = APIRouter()

    @router.get("/verify/{verification_id}")
    async def verify(request: Request, response: Response, verification_id: str):
        if rate_limiter is not None:
            client_key = _client_key(request)
            rate_limiter.check_rate_limit(client_key)
            response.headers["X-RateLimit-Remaining"] = str(
                rate_limiter.get_remaining_attempts(client_key)
            )

        result = verification_service.resolve(verification_id)
        return success_response(result.model_dump(mode="json"), request).model_dump(mode="json")

    return router
