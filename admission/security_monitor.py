"""
Security monitoring for the admission controller.

Security events are logged at a level derived from their severity, always
with the caller identifier anonymized.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

SERVICE_NAME = "leadflow-auth"

ATTACK_WINDOW = timedelta(minutes=5)
ATTACK_THRESHOLD = 10


class SecurityEventType(Enum):
    RATE_LIMIT_FAILURE = "RATE_LIMIT_FAILURE"
    BRUTE_FORCE_ATTEMPT = "BRUTE_FORCE_ATTEMPT"
    DATABASE_ERROR = "DATABASE_ERROR"


class Severity(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


_SEVERITY_LEVELS = {
    Severity.CRITICAL: logging.CRITICAL,
    Severity.HIGH: logging.ERROR,
    Severity.MEDIUM: logging.WARNING,
    Severity.LOW: logging.INFO,
}


@dataclass
class SecurityEvent:
    """A security-relevant occurrence. ``identifier`` is already anonymized."""
    type: SecurityEventType
    severity: Severity
    identifier: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "identifier": self.identifier,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
            "service": SERVICE_NAME,
        }


def anonymize_identifier(identifier: str) -> str:
    """
    Mask an identifier for logging.

    ``<address>:<email>`` identifiers are split at the last colon, so IPv6
    addresses survive intact, and only the email's local part is masked.
    Anything else keeps its first three characters.

    Examples:
        192.168.1.1:alice@example.com -> 192.168.1.1:al***@example.com
        192.168.1.1:abc@example.com   -> 192.168.1.1:a***@example.com
        192.168.1.1:notanemail        -> 192***
    """
    last_colon = identifier.rfind(":")

    if 0 < last_colon < len(identifier) - 1:
        address = identifier[:last_colon].strip()
        email = identifier[last_colon + 1:].strip()

        if email.count("@") == 1:
            local, domain = email.split("@")
            if len(local) <= 2:
                masked = "***"
            elif len(local) <= 4:
                masked = f"{local[:1]}***"
            else:
                masked = f"{local[:2]}***"
            return f"{address}:{masked}@{domain}"

    return f"{identifier[:3]}***" if len(identifier) > 3 else "***"


def log_security_event(
    event_type: SecurityEventType,
    severity: Severity,
    identifier: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> SecurityEvent:
    """
    Anonymize the identifier, build the event and log it.

    Args:
        event_type: What happened
        severity: CRITICAL and HIGH log at error or above, MEDIUM at warning, LOW at info
        identifier: Raw caller identifier
        metadata: Extra structured context

    Returns:
        The logged SecurityEvent
    """
    event = SecurityEvent(
        type=event_type,
        severity=severity,
        identifier=anonymize_identifier(identifier),
        metadata=metadata or {},
    )
    logger.log(
        _SEVERITY_LEVELS[severity],
        f"{severity.value} SECURITY EVENT: {event.to_dict()}",
    )
    return event


def detect_attack_pattern(
    events: Iterable[SecurityEvent],
    now: Optional[datetime] = None,
    clock: Callable[[], datetime] = datetime.utcnow,
) -> bool:
    """True when more than 10 rate-limit failures fall within the last 5 minutes."""
    now = now or clock()
    recent_failures = [
        e for e in events
        if e.type == SecurityEventType.RATE_LIMIT_FAILURE
        and now - e.timestamp < ATTACK_WINDOW
    ]
    return len(recent_failures) > ATTACK_THRESHOLD
