# =============================================================================
# SMTP Reply Reader
# =============================================================================
# Reads one complete server reply from the stream.
#
# An SMTP reply is one or more CRLF-terminated lines, each starting with the
# same three-digit code. The fourth character says whether more lines follow:
#
#   250-smtp.example.com        <- "-" means continuation
#   250-AUTH LOGIN PLAIN
#   250 8BITMIME                <- " " (or end of line) means final
#
# Design notes:
#   - Total bytes per reply are capped, so a hostile peer can't make us
#     buffer forever
#   - Every line read has its own deadline
#   - Malformed lines are protocol errors, EOF is an I/O error
# =============================================================================

import asyncio
import logging
import re
from dataclasses import dataclass

from relaymail.smtp.constants import Limits, ReplyClass
from relaymail.smtp.errors import SMTPIOError, SMTPProtocolError, SMTPTimeoutError

logger = logging.getLogger(__name__)

# Three ASCII digits, then optionally a separator (space or dash) and text
_REPLY_LINE = re.compile(r"^([0-9]{3})(?:([ -])(.*))?$")


@dataclass(frozen=True)
class SMTPReply:
    """
    A complete (possibly multi-line) server reply.

    Attributes:
        code: The three-digit reply code.
        lines: Text of each line, without code, separator or CRLF.
    """
    code: int
    lines: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        """All reply lines joined with newlines."""
        return "\n".join(self.lines)

    @property
    def reply_class(self) -> int:
        """Leading digit of the code (2 = success, 3 = intermediate, ...)."""
        return ReplyClass.of(self.code)

    @property
    def is_success(self) -> bool:
        return self.reply_class == ReplyClass.SUCCESS

    @property
    def is_intermediate(self) -> bool:
        return self.reply_class == ReplyClass.INTERMEDIATE

    @property
    def is_transient(self) -> bool:
        return self.reply_class == ReplyClass.TRANSIENT

    @property
    def is_permanent(self) -> bool:
        return self.reply_class == ReplyClass.PERMANENT

    def __str__(self) -> str:
        return f"{self.code} {self.text}"


async def read_reply(
    reader: asyncio.StreamReader,
    timeout: float,
    *,
    step: str = "reply",
    max_bytes: int = Limits.MAX_REPLY_BYTES,
) -> SMTPReply:
    """
    Read lines until a complete reply has been received.

    Args:
        reader: Stream to read from.
        timeout: Seconds allowed for each line.
        step: Dialogue step name, used in error messages.
        max_bytes: Cap on the total size of the reply.

    Returns:
        The parsed reply.

    Raises:
        SMTPProtocolError: If the reply is malformed or too large.
        SMTPTimeoutError: If a line doesn't arrive in time.
        SMTPIOError: If the connection drops mid-reply.
    """
    code: int | None = None
    lines: list[str] = []
    total = 0

    while True:
        raw = await _read_line(reader, timeout, step)
        total += len(raw)
        if total > max_bytes:
            raise SMTPProtocolError(
                f"Reply to {step} exceeds {max_bytes} bytes",
                step=step,
                code=code or 0,
            )

        text = raw.rstrip(b"\r\n").decode("utf-8", errors="replace")
        match = _REPLY_LINE.match(text)
        if match is None:
            raise SMTPProtocolError(
                f"Malformed reply line during {step}: {text!r}",
                step=step,
                server_text=text,
            )

        line_code = int(match.group(1))
        if code is None:
            code = line_code
        elif line_code != code:
            raise SMTPProtocolError(
                f"Reply code changed mid-reply during {step}: {code} then {line_code}",
                step=step,
                code=code,
                server_text="\n".join(lines + [text]),
            )

        lines.append(match.group(3) or "")

        # Anything but a dash ends the reply
        if match.group(2) != "-":
            reply = SMTPReply(code=code, lines=tuple(lines))
            logger.debug(f"S: {reply}")
            return reply


async def _read_line(reader: asyncio.StreamReader, timeout: float, step: str) -> bytes:
    """Read one LF-terminated line, mapping stream failures to SMTP errors."""
    try:
        return await asyncio.wait_for(reader.readuntil(b"\n"), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise SMTPTimeoutError(
            f"Timed out after {timeout}s waiting for reply to {step}",
            details={"step": step},
        ) from e
    except asyncio.IncompleteReadError as e:
        raise SMTPIOError(
            f"Connection closed by server during {step}",
            details={"step": step, "partial": e.partial.decode("utf-8", errors="replace")},
        ) from e
    except asyncio.LimitOverrunError as e:
        raise SMTPProtocolError(
            f"Reply line during {step} exceeds the stream limit",
            step=step,
        ) from e
    except OSError as e:
        raise SMTPIOError(
            f"Failed to read reply to {step}: {e}",
            details={"step": step},
        ) from e
