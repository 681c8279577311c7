# =============================================================================
# Relaymail Core Module
# =============================================================================
# This module contains the core domain models for Relaymail. These are pure
# Python dataclasses with no network code, so they can be imported anywhere
# without causing circular dependency issues.
#
# The core models represent the two inputs to every send:
#   - MailerConfig: Where to connect and how to authenticate
#   - OutboundMessage: What to deliver, and how it looks on the wire
# =============================================================================

from relaymail.core.message import (
    MessageError,
    OutboundMessage,
    dot_stuff,
    sanitize_subject,
    validate_address,
)
from relaymail.core.relay import DEFAULT_PORT, DEFAULT_TIMEOUT, MailerConfig

__all__ = [
    "MailerConfig",
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT",
    "OutboundMessage",
    "MessageError",
    "dot_stuff",
    "sanitize_subject",
    "validate_address",
]
