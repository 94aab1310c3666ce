"""
Data Models
===========

Pydantic models for jobs, screenshot requests, callbacks and API responses.
"""
