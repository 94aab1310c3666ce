"""
Screenshot API
==============

Asynchronous web page screenshot service with webhook delivery.

This package provides:
- In-process job queue with bounded concurrency and exponential retry
- Webhook callback delivery with its own backoff schedule
- Fixed-window rate limiting for the intake path
- FastAPI REST endpoints for job submission and status polling
- Browser automation with Playwright and image optimization with Pillow
"""

__version__ = "1.0.0"
__author__ = "Screenshot API Team"
