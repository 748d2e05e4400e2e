"""
API Module for the LeadFlow qualification engine.

FastAPI application with routes for:
- Streaming lead-qualification chat
- AI provider status and switching
- Lead scores and conversation completion

The application itself lives in ``api.main``.
"""
