# =============================================================================
# SMTP Client
# =============================================================================
# Sends a single HTML email over an implicit-TLS SMTP connection, driving the
# command/response dialogue by hand.
#
# Key responsibilities:
#   - Connection management (TLS from the first byte, port 465)
#   - AUTH LOGIN with base64 username/password
#   - Envelope (MAIL FROM / RCPT TO) and DATA transmission
#   - Mapping every failure to a typed SMTPError
#   - Closing the connection on every exit path
#
# The dialogue, one command outstanding at a time:
#
#   greeting 220 -> EHLO 250 -> AUTH LOGIN 334 -> user 334 -> pass 235
#     -> MAIL FROM 250 -> RCPT TO 250 -> DATA 354 -> payload 250 -> QUIT
#
# Any reply with an unexpected class stops the dialogue immediately.
# =============================================================================

import asyncio
import base64
import logging
import ssl
from typing import Any

from relaymail.core import MailerConfig, MessageError, OutboundMessage, validate_address
from relaymail.smtp.constants import Limits, ReplyClass, SMTPPorts, Timeouts
from relaymail.smtp.errors import (
    SMTPAuthenticationError,
    SMTPConfigurationError,
    SMTPConnectionError,
    SMTPError,
    SMTPIOError,
    SMTPMessageError,
    SMTPProtocolError,
    SMTPRecipientRejectedError,
    SMTPTimeoutError,
)
from relaymail.smtp.reply import SMTPReply, read_reply

logger = logging.getLogger(__name__)

# Shown in debug logs instead of the base64 AUTH LOGIN lines
_REDACTED = "<credentials>"


def _b64(value: str) -> str:
    """Base64-encode a credential for AUTH LOGIN."""
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


class SMTPSession:
    """
    One connection to the relay, walked once through the SMTP dialogue.

    A session is never reused: it's opened for a single send and closed
    when that send finishes or fails.

    Usage:
        >>> async with SMTPSession(config, ssl_context) as session:
        ...     await session.ehlo()
        ...     await session.authenticate()
        ...     await session.mail_from(config.username)
        ...     await session.rcpt_to("user@example.com")
        ...     await session.data(payload)
        ...     await session.quit()

    Attributes:
        config: Relay settings for this connection.
        step: Name of the dialogue step currently in progress.
        capabilities: Extension lines from the EHLO reply.
    """

    def __init__(self, config: MailerConfig, ssl_context: ssl.SSLContext) -> None:
        self.config = config
        self.step = "connect"
        self.capabilities: list[str] = []
        self._ssl_context = ssl_context
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        """Check if the stream is established and not yet closed."""
        return self._writer is not None and not self._closed

    def _details(self, **extra: Any) -> dict[str, Any]:
        details = {"host": self.config.host, "port": self.config.port, "step": self.step}
        details.update(extra)
        return details

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> SMTPReply:
        """
        Connect, complete the TLS handshake and read the greeting.

        Returns:
            The server greeting.

        Raises:
            SMTPConnectionError: If the TCP connect or TLS handshake fails.
            SMTPTimeoutError: If connecting takes longer than the timeout.
            SMTPProtocolError: If the greeting isn't a 2xx reply.
        """
        host, port, timeout = self.config.host, self.config.port, self.config.timeout
        logger.info(f"Connecting to SMTP {host}:{port}")

        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(
                    host,
                    port,
                    ssl=self._ssl_context,
                    server_hostname=host,
                    limit=Limits.MAX_REPLY_BYTES,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise SMTPTimeoutError(
                f"Connection to {host}:{port} timed out after {timeout}s",
                details=self._details(),
            ) from e
        except OSError as e:
            # Covers refused connections, DNS failures and ssl.SSLError
            raise SMTPConnectionError(
                f"Failed to connect to SMTP {host}:{port}: {e}",
                details=self._details(),
            ) from e

        logger.debug("SMTP connection established, waiting for greeting")
        return await self.expect("greeting", ReplyClass.SUCCESS)

    async def close(self) -> None:
        """
        Close the stream. Safe to call more than once.

        Errors from the TLS close handshake are logged and ignored; the
        transport is released either way.
        """
        if self._writer is None or self._closed:
            return

        self._closed = True
        writer = self._writer
        writer.close()
        try:
            await asyncio.wait_for(
                writer.wait_closed(),
                timeout=min(self.config.timeout, Timeouts.SMTP_CLOSE),
            )
        except (asyncio.TimeoutError, OSError) as e:
            logger.debug(f"Error during SMTP close: {e!r}")
        logger.debug(f"Closed SMTP connection to {self.config.host}")

    async def __aenter__(self) -> "SMTPSession":
        try:
            await self.open()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Low-level Command/Reply
    # -------------------------------------------------------------------------

    async def expect(
        self,
        step: str,
        expected_class: int,
        error: type[SMTPProtocolError] = SMTPProtocolError,
        timeout: float | None = None,
    ) -> SMTPReply:
        """
        Read a reply and check its class.

        Args:
            step: Name of the dialogue step, for errors and logs.
            expected_class: Required leading digit (2 or 3).
            error: Exception type raised on a mismatch.
            timeout: Override for the per-line timeout.

        Returns:
            The reply, if it had the expected class.

        Raises:
            SMTPProtocolError: (or the given subclass) on any other class.
        """
        if self._reader is None:
            raise SMTPIOError(f"Not connected (step {step})", details=self._details())

        self.step = step
        reply = await read_reply(
            self._reader,
            timeout if timeout is not None else self.config.timeout,
            step=step,
        )
        if reply.reply_class != expected_class:
            raise error(
                f"Server rejected {step}",
                step=step,
                code=reply.code,
                server_text=reply.text,
                details={"host": self.config.host, "port": self.config.port},
            )
        return reply

    async def command(
        self,
        line: str,
        *,
        step: str,
        expect: int,
        error: type[SMTPProtocolError] = SMTPProtocolError,
        log_line: str | None = None,
        timeout: float | None = None,
    ) -> SMTPReply:
        """
        Send one command line and read its reply.

        Args:
            line: Command without the trailing CRLF.
            step: Name of the dialogue step.
            expect: Required leading digit of the reply.
            error: Exception type raised on an unexpected reply.
            log_line: What to show in debug logs instead of the line.
            timeout: Override for the write and read timeouts.

        Returns:
            The server's reply.
        """
        self.step = step
        await self.write(
            f"{line}\r\n".encode("utf-8"),
            log_line=log_line if log_line is not None else line,
            timeout=timeout,
        )
        return await self.expect(step, expect, error, timeout)

    async def write(self, data: bytes, *, log_line: str, timeout: float | None = None) -> None:
        """
        Write raw bytes and wait for the transport to accept them.

        Raises:
            SMTPTimeoutError: If the write can't be flushed in time.
            SMTPIOError: If the connection fails while writing.
        """
        if self._writer is None or self._closed:
            raise SMTPIOError(f"Not connected (step {self.step})", details=self._details())

        timeout = timeout if timeout is not None else self.config.timeout
        logger.debug(f"C: {log_line}")
        try:
            self._writer.write(data)
            await asyncio.wait_for(self._writer.drain(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise SMTPTimeoutError(
                f"Timed out after {timeout}s sending {self.step}",
                details=self._details(),
            ) from e
        except OSError as e:
            raise SMTPIOError(
                f"Failed to send {self.step}: {e}",
                details=self._details(),
            ) from e

    # -------------------------------------------------------------------------
    # Dialogue Steps
    # -------------------------------------------------------------------------

    async def ehlo(self) -> SMTPReply:
        """Identify ourselves and record the server's extensions."""
        reply = await self.command(
            f"EHLO {self.config.helo_name}",
            step="ehlo",
            expect=ReplyClass.SUCCESS,
        )
        # First line is the server's own name; the rest are extensions
        self.capabilities = [line.upper() for line in reply.lines[1:]]
        logger.debug(f"Server capabilities: {self.capabilities}")
        return reply

    async def authenticate(self) -> SMTPReply:
        """
        Authenticate using AUTH LOGIN.

        Raises:
            SMTPAuthenticationError: If the server rejects any AUTH step.
        """
        logger.debug(f"Authenticating as {self.config.username}")
        await self.command(
            "AUTH LOGIN",
            step="auth",
            expect=ReplyClass.INTERMEDIATE,
            error=SMTPAuthenticationError,
        )
        await self.command(
            _b64(self.config.username),
            step="auth_username",
            expect=ReplyClass.INTERMEDIATE,
            error=SMTPAuthenticationError,
            log_line=_REDACTED,
        )
        reply = await self.command(
            _b64(self.config.password),
            step="auth_password",
            expect=ReplyClass.SUCCESS,
            error=SMTPAuthenticationError,
            log_line=_REDACTED,
        )
        logger.debug("SMTP authentication successful")
        return reply

    async def mail_from(self, sender: str) -> SMTPReply:
        """Start the mail transaction with the envelope sender."""
        return await self.command(
            f"MAIL FROM:<{sender}>",
            step="mail_from",
            expect=ReplyClass.SUCCESS,
        )

    async def rcpt_to(self, recipient: str) -> SMTPReply:
        """
        Add the single envelope recipient.

        Raises:
            SMTPRecipientRejectedError: If the server refuses the address.
        """
        return await self.command(
            f"RCPT TO:<{recipient}>",
            step="rcpt_to",
            expect=ReplyClass.SUCCESS,
            error=SMTPRecipientRejectedError,
        )

    async def data(self, payload: bytes) -> SMTPReply:
        """
        Transmit the message.

        Args:
            payload: Rendered message, already dot-stuffed and ending in
                     the "." terminator line.

        Returns:
            The server's acceptance reply for the message.
        """
        await self.command("DATA", step="data", expect=ReplyClass.INTERMEDIATE)
        self.step = "message"
        await self.write(payload, log_line=f"<message, {len(payload)} bytes>")
        return await self.expect("message", ReplyClass.SUCCESS)

    async def quit(self) -> None:
        """
        Say goodbye. Best-effort: the message is already accepted by now,
        so a missing or odd QUIT reply is logged and ignored.
        """
        try:
            await self.command(
                "QUIT",
                step="quit",
                expect=ReplyClass.SUCCESS,
                timeout=min(self.config.timeout, Timeouts.SMTP_QUIT),
            )
        except SMTPError as e:
            logger.debug(f"Ignoring QUIT failure: {e}")


class SMTPMailer:
    """
    Sends single HTML emails through one relay.

    Each call to send() opens its own connection and closes it before
    returning. Nothing is pooled, cached or retried, so one mailer can be
    shared by concurrent tasks.

    Usage:
        >>> mailer = SMTPMailer(config)
        >>> await mailer.send("user@example.com", "Hello", "<p>Hi!</p>")

    Attributes:
        config: Relay settings used for every send.
    """

    def __init__(
        self,
        config: MailerConfig,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        """
        Initialize the mailer.

        Args:
            config: Relay host, port and credentials.
            ssl_context: TLS settings. Defaults to the system trust store
                         with hostname verification.
        """
        self.config = config
        self._ssl_context = ssl_context

    def _make_ssl_context(self) -> ssl.SSLContext:
        if self._ssl_context is not None:
            return self._ssl_context
        return ssl.create_default_context()

    def _prepare(self, to: str, subject: str, html_body: str) -> tuple[str, str, bytes]:
        """
        Validate the config and render the message before touching the network.

        Returns:
            (sender, recipient, payload) ready for the dialogue.
        """
        missing = self.config.missing_fields()
        if missing:
            raise SMTPConfigurationError(missing, details={"host": self.config.host})

        message = OutboundMessage(to=to, subject=subject, html_body=html_body)
        try:
            sender = validate_address(self.config.username, "Sender")
            recipient = message.recipient
            payload = message.render(sender)
        except MessageError as e:
            raise SMTPMessageError(str(e), details={"recipient": to}) from e

        return sender, recipient, payload

    async def send(self, to: str, subject: str, html_body: str) -> None:
        """
        Deliver one HTML email to the relay.

        Returns once the relay has accepted the message and the connection
        is closed. Acceptance means queued for relay, not delivered.

        Args:
            to: Recipient address.
            subject: Subject line.
            html_body: HTML content.

        Raises:
            SMTPConfigurationError: If host or credentials are missing.
            SMTPMessageError: If the sender or recipient address is unusable.
            SMTPConnectionError: If the connection or TLS handshake fails.
            SMTPIOError: If the stream fails or times out mid-session.
            SMTPAuthenticationError: If the credentials are rejected.
            SMTPRecipientRejectedError: If the recipient is refused.
            SMTPProtocolError: If any other step is refused.
        """
        sender, recipient, payload = self._prepare(to, subject, html_body)

        if not SMTPPorts.is_implicit_ssl(self.config.port):
            logger.warning(
                f"Port {self.config.port} is not the implicit TLS port "
                f"{SMTPPorts.SUBMISSION_SSL}; STARTTLS is not supported"
            )

        logger.info(f"Sending email to {recipient} via {self.config.host}")
        try:
            async with SMTPSession(self.config, self._make_ssl_context()) as session:
                await session.ehlo()
                await session.authenticate()
                await session.mail_from(sender)
                await session.rcpt_to(recipient)
                reply = await session.data(payload)
                await session.quit()
        except SMTPError as e:
            logger.error(f"Failed to send email to {recipient}: {e}")
            raise

        logger.info(f"Email to {recipient} accepted by {self.config.host}: {reply}")


async def send_mail(to: str, subject: str, html_body: str, config: MailerConfig) -> None:
    """
    Send one HTML email with the given relay settings.

    Convenience wrapper around SMTPMailer for one-off sends.
    """
    await SMTPMailer(config).send(to, subject, html_body)
