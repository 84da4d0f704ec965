"""
Middleware package for request throttling.

Provides:
- FixedWindowRateLimiter: per-(route, scope) fixed-window counting
- InMemoryRateLimitStore / RedisRateLimitStore: counter storage backends
"""
