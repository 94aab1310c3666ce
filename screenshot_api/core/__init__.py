"""
Core Business Logic
==================

Job pipeline and screenshot processing components.

Modules:
- queue: Job queue, job store, retry policy and janitor
- ratelimit: Fixed-window request rate limiting
- callbacks: Webhook delivery with retries
- rendering: Screenshot capture and image optimization
- storage: Screenshot upload
- service: Top-level wiring of the pipeline
"""
