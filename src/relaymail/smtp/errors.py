# =============================================================================
# SMTP Exceptions
# =============================================================================
# Every failure of a send is raised as one of these, so callers can tell a
# missing config apart from a refused connection, a dropped stream, or a
# server that said no.
#
#   SMTPError
#   ├── SMTPConfigurationError      host/credentials missing (no I/O done)
#   ├── SMTPMessageError            recipient unusable (no I/O done)
#   ├── SMTPConnectionError         TCP connect or TLS handshake failed
#   ├── SMTPIOError                 stream failed mid-session
#   │   └── SMTPTimeoutError        a step took longer than allowed
#   └── SMTPProtocolError           server replied with the wrong class
#       ├── SMTPAuthenticationError AUTH LOGIN rejected
#       └── SMTPRecipientRejectedError RCPT TO rejected
# =============================================================================

from typing import Any


class SMTPError(Exception):
    """Base exception for SMTP operations."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class SMTPConfigurationError(SMTPError):
    """Raised when required relay settings are missing."""

    def __init__(self, missing: list[str], details: dict[str, Any] | None = None) -> None:
        self.missing = list(missing)
        super().__init__(
            f"SMTP not configured, missing: {', '.join(self.missing)}",
            details,
        )


class SMTPMessageError(SMTPError):
    """Raised when the message can't be sent as given."""
    pass


class SMTPConnectionError(SMTPError):
    """Raised when unable to connect to, or negotiate TLS with, the server."""
    pass


class SMTPIOError(SMTPError):
    """Raised when reading from or writing to the server fails mid-session."""
    pass


class SMTPTimeoutError(SMTPIOError):
    """Raised when a network step exceeds the configured timeout."""
    pass


class SMTPProtocolError(SMTPError):
    """
    Raised when the server's reply doesn't have the expected class.

    Attributes:
        step: Name of the dialogue step that failed (e.g., "mail_from").
        code: Reply code from the server (0 if the reply was unparseable).
        server_text: Raw reply text, preserved for diagnosis.
    """

    def __init__(
        self,
        message: str,
        *,
        step: str,
        code: int = 0,
        server_text: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.step = step
        self.code = code
        self.server_text = server_text
        merged = {"step": step, "code": code, "server_text": server_text}
        merged.update(details or {})
        super().__init__(message, merged)

    def __str__(self) -> str:
        if self.code:
            return f"{self.message} ({self.code} {self.server_text})"
        return self.message


class SMTPAuthenticationError(SMTPProtocolError):
    """Raised when the server rejects AUTH LOGIN."""
    pass


class SMTPRecipientRejectedError(SMTPProtocolError):
    """Raised when the server rejects the RCPT TO address."""
    pass
