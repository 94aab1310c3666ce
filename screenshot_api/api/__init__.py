"""
API Layer
=========

FastAPI application exposing job submission, status polling and health.
"""
