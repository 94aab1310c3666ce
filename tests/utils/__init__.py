"""
Test Utilities
==============

Mocks and helpers shared by the unit and integration tests.
"""
