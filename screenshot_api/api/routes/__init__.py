"""
API Routes
==========

Route modules for screenshots, health and the dummy callback receiver.
"""
