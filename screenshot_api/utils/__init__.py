"""
Utilities
=========

Shared helpers used across the pipeline components.
"""
