"""
Request-level authentication for the media routes.
"""
