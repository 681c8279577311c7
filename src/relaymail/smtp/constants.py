"""SMTP reply codes, ports and limits used by the mailer."""


class SMTPReplyCode:
    """Standard SMTP reply codes seen during a submission."""

    # 2xx Success
    SERVICE_READY = 220  # Greeting
    CLOSING = 221  # Reply to QUIT
    AUTH_SUCCESSFUL = 235  # AUTH completed
    OK = 250  # Requested mail action okay, completed

    # 3xx Intermediate
    AUTH_CONTINUE = 334  # Server challenge during AUTH
    START_MAIL = 354  # Start mail input; end with <CRLF>.<CRLF>

    # 4xx Transient Failure
    SERVICE_NOT_AVAILABLE = 421  # Service not available, closing channel

    # 5xx Permanent Failure
    AUTH_FAILED = 535  # Authentication credentials invalid
    MAILBOX_UNAVAILABLE = 550  # Mailbox unavailable
    TRANSACTION_FAILED = 554  # Transaction failed


class ReplyClass:
    """Leading digit of a reply code."""

    SUCCESS = 2
    INTERMEDIATE = 3
    TRANSIENT = 4
    PERMANENT = 5

    @classmethod
    def of(cls, code: int) -> int:
        """Return the class digit for a reply code."""
        return code // 100


class SMTPPorts:
    """Standard SMTP port numbers."""

    SUBMISSION_SSL = 465  # Implicit TLS (the only mode the mailer speaks)
    SUBMISSION = 587  # STARTTLS, not supported

    @classmethod
    def is_implicit_ssl(cls, port: int) -> bool:
        """Check if a port conventionally uses implicit TLS."""
        return port == cls.SUBMISSION_SSL


class Timeouts:
    """Timeout values for SMTP operations (in seconds)."""

    SMTP_CLOSE = 5.0  # Waiting for the TLS close handshake
    SMTP_QUIT = 5.0  # QUIT reply (best-effort)


class Limits:
    """Size limits protecting against misbehaving servers."""

    MAX_REPLY_BYTES = 8 * 1024  # Total bytes accepted for one reply
