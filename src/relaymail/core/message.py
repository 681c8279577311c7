# =============================================================================
# Outbound Message Model
# =============================================================================
# Represents the single HTML email handed to the mailer, and knows how to
# turn itself into the bytes sent during the SMTP DATA phase.
#
# Caller-supplied text goes into the protocol stream, so this module is where
# injection is prevented:
#   - Sender and recipient addresses are validated (no CR/LF, brackets or
#     whitespace)
#   - Subjects are folded onto a single line
#   - Body lines are normalised to CRLF, wrapped at the 998 octet line limit
#     and dot-stuffed (RFC 5321 4.5.2)
# =============================================================================

import re
from dataclasses import dataclass
from email.header import Header
from email.utils import formatdate, make_msgid

CRLF = "\r\n"

# Any of the three line ending conventions
_LINE_BREAK = re.compile(r"\r\n|\r|\n")

# RFC 5322 allows 998 octets per line; one is kept back for a stuffed dot
MAX_BODY_LINE = 997

# Characters that must never appear in an envelope address
_FORBIDDEN_ADDRESS_CHARS = re.compile(r"[\s<>]")


def validate_address(address: str, kind: str = "Recipient") -> str:
    """
    Check that an address is plausible enough to put in MAIL FROM or RCPT TO.

    This is not full RFC 5322 validation. It rejects the
    things that would break or inject into the protocol line.

    Args:
        address: The address to check.
        kind: How to name the address in error messages.

    Returns:
        The address with surrounding whitespace removed.

    Raises:
        MessageError: If the address is empty or malformed.
    """
    candidate = (address or "").strip()
    if not candidate:
        raise MessageError(f"{kind} address is empty")

    if _FORBIDDEN_ADDRESS_CHARS.search(candidate):
        raise MessageError(f"{kind} address contains invalid characters: {candidate!r}")

    local, sep, domain = candidate.rpartition("@")
    if not sep or not local or not domain or "@" in local:
        raise MessageError(f"{kind} address is not of the form user@domain: {candidate!r}")

    return candidate


def sanitize_subject(subject: str) -> str:
    """Fold any line breaks in a subject into single spaces."""
    return " ".join(part.strip() for part in (subject or "").splitlines()).strip()


def encode_subject(subject: str) -> str:
    """
    Encode a subject for the Subject header.

    ASCII subjects are sent as-is. Anything else is RFC 2047 encoded.
    """
    if subject.isascii():
        return subject
    return Header(subject, "utf-8", header_name="Subject").encode(linesep=CRLF)


def wrap_line(line: str, limit: int = MAX_BODY_LINE) -> list[str]:
    """
    Break a line so no piece is longer than `limit` UTF-8 bytes.

    Breaks at the last space before the limit (dropping that space), or
    mid-text if there is none. Multi-byte characters are never split.
    """
    pieces = []
    while len(line.encode("utf-8")) > limit:
        cut = len(line.encode("utf-8")[:limit].decode("utf-8", errors="ignore"))
        space = line.rfind(" ", 0, cut + 1)
        if space > 0:
            pieces.append(line[:space])
            line = line[space + 1:]
        else:
            pieces.append(line[:cut])
            line = line[cut:]
    pieces.append(line)
    return pieces


def dot_stuff(body: str) -> list[str]:
    """
    Split a body into lines ready for the DATA phase.

    Line endings are normalised, over-long lines are wrapped, and any line
    starting with "." gets an extra leading dot, so no body line can
    terminate DATA early.

    Returns:
        List of lines without line terminators.
    """
    lines = _LINE_BREAK.split(body or "")
    # A trailing newline shouldn't produce an extra blank line
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    wrapped = [piece for line in lines for piece in wrap_line(line)]
    return ["." + line if line.startswith(".") else line for line in wrapped]


@dataclass(frozen=True)
class OutboundMessage:
    """
    A single HTML email to one recipient.

    Attributes:
        to: Recipient email address.
        subject: Subject line (line breaks are folded away on render).
        html_body: HTML content, sent as text/html; charset=utf-8.
    """
    to: str
    subject: str
    html_body: str

    @property
    def recipient(self) -> str:
        """The validated recipient address."""
        return validate_address(self.to)

    def headers(self, sender: str) -> list[tuple[str, str]]:
        """
        Build the header block for this message.

        Args:
            sender: Address used in the From header.

        Returns:
            List of (name, value) pairs in send order.

        Raises:
            MessageError: If the sender or recipient address is unusable.
        """
        sender = validate_address(sender, "Sender")
        domain = sender.rpartition("@")[2]
        return [
            ("From", sender),
            ("To", self.recipient),
            ("Subject", encode_subject(sanitize_subject(self.subject))),
            ("Date", formatdate(localtime=True)),
            ("Message-ID", make_msgid(domain=domain)),
            ("MIME-Version", "1.0"),
            ("Content-Type", "text/html; charset=utf-8"),
            ("Content-Transfer-Encoding", "8bit"),
        ]

    def render(self, sender: str) -> bytes:
        """
        Render the full DATA payload, including the terminating "." line.

        Args:
            sender: Address used in the From header.

        Returns:
            UTF-8 encoded payload ready to write after a 354 reply.
        """
        lines = [f"{name}: {value}" for name, value in self.headers(sender)]
        lines.append("")
        lines.extend(dot_stuff(self.html_body))
        lines.append(".")
        return (CRLF.join(lines) + CRLF).encode("utf-8")


class MessageError(ValueError):
    """Raised when a message can't be safely put on the wire."""
    pass
