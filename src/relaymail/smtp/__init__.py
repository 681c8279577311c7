# =============================================================================
# SMTP Module
# =============================================================================
# Handles sending email via SMTP (Simple Mail Transfer Protocol).
#
# Features:
#   - Implicit TLS connection (SMTPS, port 465)
#   - AUTH LOGIN authentication
#   - Bounded multi-line reply parsing
#   - Typed errors for every failure class
#
# The protocol is spoken directly over an asyncio stream; there's no client
# library underneath.
# =============================================================================

from relaymail.smtp.client import (
    SMTPMailer,
    SMTPSession,
    send_mail,
)
from relaymail.smtp.errors import (
    SMTPError,
    SMTPConfigurationError,
    SMTPMessageError,
    SMTPConnectionError,
    SMTPIOError,
    SMTPTimeoutError,
    SMTPProtocolError,
    SMTPAuthenticationError,
    SMTPRecipientRejectedError,
)
from relaymail.smtp.reply import SMTPReply, read_reply

__all__ = [
    # Client
    "SMTPMailer",
    "SMTPSession",
    "send_mail",
    # Replies
    "SMTPReply",
    "read_reply",
    # Errors
    "SMTPError",
    "SMTPConfigurationError",
    "SMTPMessageError",
    "SMTPConnectionError",
    "SMTPIOError",
    "SMTPTimeoutError",
    "SMTPProtocolError",
    "SMTPAuthenticationError",
    "SMTPRecipientRejectedError",
]
