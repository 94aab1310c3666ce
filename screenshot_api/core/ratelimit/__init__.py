"""
Rate Limiting
=============

Fixed-window request counting per client key.
"""

from screenshot_api.core.ratelimit.limiter import RateLimiter, RateLimitRecord

__all__ = ["RateLimiter", "RateLimitRecord"]
