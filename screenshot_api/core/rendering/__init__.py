"""
Rendering
=========

Web page capture with Playwright and image post-processing with Pillow.
"""
