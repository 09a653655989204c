"""
Rate Limiting Middleware
Implements rate limiting for ledger write endpoints
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Tuple, Optional
import threading
import logging

logger = logging.getLogger(__name__)

DEFAULT_LIMITS = {
    # Posting endpoints
    '/api/v1/transactions/journal-entries': (30, 60),   # 30 per minute
    '/api/v1/invoices': (30, 60),
    '/api/v1/bills': (30, 60),
    '/api/v1/organizations': (5, 300),                  # 5 per 5 minutes

    # Default limit for all other endpoints
    'default': (100, 60),  # 100 requests per minute
}


class RateLimiter:
    """
    Thread-safe in-memory rate limiter using sliding window algorithm.
    For production, consider using Redis for distributed rate limiting.
    """

    def __init__(self, limits: Optional[Dict[str, Tuple[int, int]]] = None):
        self._requests: Dict[str, list] = defaultdict(list)
        self._lock = threading.Lock()
        self.limits = dict(limits or DEFAULT_LIMITS)

    def _get_client_ip(self, request: Request) -> str:
        """Get client IP address from request"""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"

    def _get_rate_limit_key(self, request: Request) -> str:
        """
        Create a unique key for rate limiting.
        Combines IP address with a token prefix if authenticated.
        """
        ip = self._get_client_ip(request)

        auth_header = request.headers.get("Authorization", "")
        actor = "anonymous"
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            if len(token) > 8:
                actor = token[-8:]

        return f"{ip}:{actor}"

    def _cleanup_old_requests(self, key: str, window_seconds: int):
        """Remove requests outside the time window"""
        cutoff = datetime.utcnow() - timedelta(seconds=window_seconds)
        self._requests[key] = [
            timestamp for timestamp in self._requests[key]
            if timestamp > cutoff
        ]

    def _limit_for(self, path: str) -> Tuple[int, int]:
        if path in self.limits:
            return self.limits[path]
        # Parameterized routes inherit the limit of their collection
        for pattern, limit in self.limits.items():
            if pattern != 'default' and path.startswith(pattern + '/'):
                return limit
        return self.limits['default']

    def is_allowed(self, request: Request) -> Tuple[bool, Optional[Dict]]:
        """
        Check if the request is allowed under rate limiting rules.

        Returns:
            Tuple of (is_allowed, rate_limit_info)
        """
        path = request.url.path

        # Only rate limit write operations
        if request.method in ['GET', 'HEAD', 'OPTIONS']:
            return True, None

        limit, window = self._limit_for(path)
        key = f"{path}:{self._get_rate_limit_key(request)}"

        with self._lock:
            self._cleanup_old_requests(key, window)

            current_count = len(self._requests[key])

            if current_count >= limit:
                oldest_request = min(self._requests[key]) if self._requests[key] else datetime.utcnow()
                retry_after = int((oldest_request + timedelta(seconds=window) - datetime.utcnow()).total_seconds())

                logger.warning(f"Rate limit exceeded for {key}: {current_count}/{limit} requests")

                return False, {
                    'limit': limit,
                    'remaining': 0,
                    'reset': retry_after,
                    'retry_after': max(1, retry_after)
                }

            self._requests[key].append(datetime.utcnow())

            return True, {
                'limit': limit,
                'remaining': limit - current_count - 1,
                'reset': window
            }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware for rate limiting"""

    def __init__(self, app, enabled: bool = True, limits: Optional[Dict[str, Tuple[int, int]]] = None):
        super().__init__(app)
        self.enabled = enabled
        self.rate_limiter = RateLimiter(limits)

    async def dispatch(self, request: Request, call_next):
        if not self.enabled or not request.url.path.startswith('/api/'):
            return await call_next(request)

        is_allowed, rate_info = self.rate_limiter.is_allowed(request)

        if not is_allowed:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    'error': 'Too many requests. Please try again later.',
                    'retry_after': rate_info.get('retry_after', 60)
                },
                headers={
                    'Retry-After': str(rate_info.get('retry_after', 60)),
                    'X-RateLimit-Limit': str(rate_info.get('limit', 0)),
                    'X-RateLimit-Remaining': '0',
                    'X-RateLimit-Reset': str(rate_info.get('reset', 60))
                }
            )

        response = await call_next(request)

        if rate_info:
            response.headers['X-RateLimit-Limit'] = str(rate_info['limit'])
            response.headers['X-RateLimit-Remaining'] = str(rate_info['remaining'])
            response.headers['X-RateLimit-Reset'] = str(rate_info['reset'])

        return response
