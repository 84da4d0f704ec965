"""
Request security guards.

Provides:
- CSRF double-submit verification (csrf)
- Guard composition for route handlers (guards)

Rate limiting lives in src.middleware.rate_limit.
"""
