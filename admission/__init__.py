"""
Admission control for the LeadFlow API.

Persisted, race-free rate limiting with per-endpoint fail-open or
fail-closed policies, plus security event logging.
"""

from .controller import (
    AdmissionController,
    RateLimitConfig,
    RateLimitResult,
    RateLimitExceeded,
    RateLimitStoreUnavailable,
    RATE_LIMITS,
)
from .security_monitor import (
    SecurityEvent,
    SecurityEventType,
    Severity,
    anonymize_identifier,
    detect_attack_pattern,
    log_security_event,
)

__all__ = [
    "AdmissionController",
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimitExceeded",
    "RateLimitStoreUnavailable",
    "RATE_LIMITS",
    "SecurityEvent",
    "SecurityEventType",
    "Severity",
    "anonymize_identifier",
    "detect_attack_pattern",
    "log_security_event",
]
