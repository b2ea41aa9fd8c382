"""
Redis-based rate limiting for API endpoints.

Fixed window counter per client IP and view. When Redis is unreachable or
rate limiting is disabled in settings, requests pass through unchecked.
"""
import logging
from functools import wraps
from typing import Optional, Tuple

import redis
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None
_redis_checked = False


def get_redis_client() -> Optional[redis.Redis]:
    """Return a connected Redis client, or None when Redis is unavailable."""
    global _redis_client, _redis_checked
    if _redis_checked:
        return _redis_client

    _redis_checked = True
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5
        )
        client.ping()
        _redis_client = client
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning(f"Redis connection failed: {e}. Rate limiting will be disabled.")
        _redis_client = None
    return _redis_client


def rate_limiting_active() -> bool:
    if not getattr(settings, 'RATE_LIMIT_ENABLED', True):
        return False
    return get_redis_client() is not None


def get_client_ip(request):
    """Extract client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def hit(key: str, window_seconds: int) -> Tuple[int, int]:
    """Count one request against ``key``; returns (count, seconds until reset)."""
    client = get_redis_client()
    current_count = client.incr(key)
    if current_count == 1:
        client.expire(key, window_seconds)
    return current_count, client.ttl(key)


def limit_exceeded_response(max_requests: int, window_seconds: int, ttl: int) -> Response:
    return Response(
        {
            'error': 'Rate limit exceeded',
            'detail': f'Maximum {max_requests} requests per {window_seconds} seconds allowed.',
            'retry_after': ttl
        },
        status=status.HTTP_429_TOO_MANY_REQUESTS,
        headers={
            'X-RateLimit-Limit': str(max_requests),
            'X-RateLimit-Remaining': '0',
            'X-RateLimit-Reset': str(ttl),
            'Retry-After': str(ttl)
        }
    )


def add_rate_limit_headers(response, max_requests: int, current_count: int, ttl: int):
    response['X-RateLimit-Limit'] = str(max_requests)
    response['X-RateLimit-Remaining'] = str(max(0, max_requests - current_count))
    response['X-RateLimit-Reset'] = str(ttl)
    return response


def rate_limit(max_requests: int = 20, window_seconds: int = 60):
    """
    Rate limiting decorator for DRF view methods.

    Usage:
        @rate_limit(20, 60)  # 20 requests per minute
        def get(self, request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(self, request, *args, **kwargs):
            if not rate_limiting_active():
                return view_func(self, request, *args, **kwargs)

            key = f"rate_limit:{view_func.__name__}:{get_client_ip(request)}"
            try:
                current_count, ttl = hit(key, window_seconds)
            except redis.RedisError as e:
                logger.error(f"Redis error in rate limiting: {e}")
                return view_func(self, request, *args, **kwargs)

            if current_count > max_requests:
                return limit_exceeded_response(max_requests, window_seconds, ttl)

            response = view_func(self, request, *args, **kwargs)
            return add_rate_limit_headers(response, max_requests, current_count, ttl)

        return wrapper
    return decorator


class RateLimitMixin:
    """
    Mixin for class-based views; limits every method of the view.

    Usage:
        class MyView(RateLimitMixin, APIView):
            rate_limit_max_requests = 20
            rate_limit_window_seconds = 60
    """
    rate_limit_max_requests = 20
    rate_limit_window_seconds = 60

    def dispatch(self, request, *args, **kwargs):
        if not rate_limiting_active():
            return super().dispatch(request, *args, **kwargs)

        key = f"rate_limit:{self.__class__.__name__}:{get_client_ip(request)}"
        try:
            current_count, ttl = hit(key, self.rate_limit_window_seconds)
        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return super().dispatch(request, *args, **kwargs)

        if current_count > self.rate_limit_max_requests:
            # dispatch() returns before DRF finalizes this response, so it
            # needs a renderer set explicitly.
            response = limit_exceeded_response(
                self.rate_limit_max_requests, self.rate_limit_window_seconds, ttl
            )
            return self._finalize_limited_response(request, response)

        response = super().dispatch(request, *args, **kwargs)
        return add_rate_limit_headers(response, self.rate_limit_max_requests, current_count, ttl)

    def _finalize_limited_response(self, request, response):
        self.args = ()
        self.kwargs = {}
        self.request = self.initialize_request(request)
        self.headers = self.default_response_headers
        return self.finalize_response(self.request, response)
