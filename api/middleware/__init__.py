"""
API Middleware.
"""
