"""
API Routes for the LeadFlow qualification engine.
"""

from . import chat, leads, providers

__all__ = ["chat", "leads", "providers"]
