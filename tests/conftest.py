# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the Relaymail test suite.
#
# The centrepiece is FakeSMTPServer: a scripted SMTP server listening on
# 127.0.0.1 behind real TLS (certificates issued by trustme). Tests can
# override the reply for any step, stall a step, or drop the connection,
# and then inspect what the client sent and whether it hung up.
# =============================================================================

import asyncio
import base64
import ssl

import pytest
import trustme

from relaymail.core import MailerConfig

# Reply value that makes the server hang up instead of answering
DROP = b""

DEFAULT_REPLIES: dict[str, bytes | None] = {
    "greeting": b"220 fake.test ESMTP ready\r\n",
    "ehlo": b"250-fake.test\r\n250-AUTH LOGIN PLAIN\r\n250 8BITMIME\r\n",
    "auth": b"334 VXNlcm5hbWU6\r\n",
    "auth_username": b"334 UGFzc3dvcmQ6\r\n",
    "auth_password": b"235 2.7.0 Authentication successful\r\n",
    "mail_from": b"250 2.1.0 Ok\r\n",
    "rcpt_to": b"250 2.1.5 Ok\r\n",
    "data": b"354 End data with <CR><LF>.<CR><LF>\r\n",
    "message": b"250 2.0.0 Ok: queued as 4F2A9\r\n",
    "quit": b"221 2.0.0 Bye\r\n",
}


class FakeSMTPServer:
    """
    Scripted SMTP-over-TLS server for tests.

    Replies are looked up by step name (see DEFAULT_REPLIES). A reply of
    None stalls the step (the server waits for the client to hang up); a
    reply of DROP closes the connection.

    Attributes:
        commands: Command lines received, excluding AUTH LOGIN credentials.
        credentials: Decoded AUTH LOGIN username/password lines.
        messages: Raw DATA payloads (still dot-stuffed, without the
                  terminating "." line).
        connections: Number of connections accepted.
        closed_connections: Number of connections that have ended.
    """

    def __init__(self, ssl_context: ssl.SSLContext, replies: dict | None = None) -> None:
        self.replies = {**DEFAULT_REPLIES, **(replies or {})}
        self.commands: list[str] = []
        self.credentials: list[str] = []
        self.messages: list[bytes] = []
        self.connections = 0
        self.closed_connections = 0
        self.host = "127.0.0.1"
        self.port = 0
        self._ssl_context = ssl_context
        self._server: asyncio.Server | None = None
        self._writers: list[asyncio.StreamWriter] = []

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._handle, self.host, 0, ssl=self._ssl_context
        )
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        for writer in self._writers:
            writer.close()
        if self._server is not None:
            self._server.close()
            try:
                await asyncio.wait_for(self._server.wait_closed(), timeout=5)
            except asyncio.TimeoutError:
                pass

    def count(self, prefix: str) -> int:
        """Count received commands starting with prefix (case-insensitive)."""
        return sum(1 for c in self.commands if c.upper().startswith(prefix.upper()))

    async def wait_for_close(self, count: int = 1, timeout: float = 5.0) -> None:
        """Wait until `count` connections have been closed."""
        async def _poll():
            while self.closed_connections < count:
                await asyncio.sleep(0.01)
        await asyncio.wait_for(_poll(), timeout=timeout)

    # -------------------------------------------------------------------------
    # Connection Handling
    # -------------------------------------------------------------------------

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self._writers.append(writer)
        try:
            await self._converse(reader, writer)
        except (ConnectionError, ssl.SSLError, asyncio.IncompleteReadError):
            pass
        finally:
            self.closed_connections += 1
            writer.close()

    async def _reply(self, reader, writer, step: str) -> bool:
        """Send the scripted reply. Returns False if the conversation is over."""
        data = self.replies.get(step, b"500 5.5.1 Unrecognized command\r\n")
        if data is None:
            # Stall until the client gives up
            await reader.read()
            return False
        if data == DROP:
            return False
        writer.write(data)
        await writer.drain()
        return True

    async def _converse(self, reader, writer) -> None:
        if not await self._reply(reader, writer, "greeting"):
            return

        auth_state: str | None = None
        while True:
            line = await reader.readline()
            if not line:
                return  # client hung up
            text = line.decode("utf-8").rstrip("\r\n")

            if auth_state is not None:
                self.credentials.append(base64.b64decode(text).decode("utf-8"))
                step = auth_state
            else:
                self.commands.append(text)
                verb = text.upper()
                if verb.startswith("EHLO"):
                    step = "ehlo"
                elif verb == "AUTH LOGIN":
                    step = "auth"
                elif verb.startswith("MAIL FROM:"):
                    step = "mail_from"
                elif verb.startswith("RCPT TO:"):
                    step = "rcpt_to"
                elif verb == "DATA":
                    step = "data"
                elif verb == "QUIT":
                    step = "quit"
                else:
                    step = "unknown"

            if not await self._reply(reader, writer, step):
                return

            accepted = self.replies.get(step, b"")[:1] == b"3"
            if step == "auth":
                auth_state = "auth_username" if accepted else None
            elif step == "auth_username":
                auth_state = "auth_password" if accepted else None
            elif step == "auth_password":
                auth_state = None
            elif step == "data" and accepted:
                self.messages.append(await self._read_data(reader))
                if not await self._reply(reader, writer, "message"):
                    return

    async def _read_data(self, reader) -> bytes:
        lines = []
        while True:
            line = await reader.readline()
            if not line or line == b".\r\n":
                return b"".join(lines)
            lines.append(line)


# =============================================================================
# Environment Isolation
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep real SMTP settings, config files and keyrings out of every test."""
    for name in ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASSWORD", "SMTP_TIMEOUT"):
        # setenv first so teardown also removes values loaded from a .env
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setattr("relaymail.config.keyring.get_password", lambda service, username: None)


# =============================================================================
# TLS Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def tls_ca():
    """A throwaway certificate authority for the fake server."""
    return trustme.CA()


@pytest.fixture(scope="session")
def server_ssl_context(tls_ca):
    """Server-side TLS context with a certificate for 127.0.0.1."""
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    tls_ca.issue_cert("127.0.0.1", "localhost").configure_cert(context)
    return context


@pytest.fixture(scope="session")
def client_ssl_context(tls_ca):
    """Client-side TLS context that trusts the throwaway CA."""
    context = ssl.create_default_context()
    tls_ca.configure_trust(context)
    return context


# =============================================================================
# Server and Config Fixtures
# =============================================================================

@pytest.fixture
async def smtp_server_factory(server_ssl_context):
    """
    Start fake servers with custom replies.

    Usage:
        server = await smtp_server_factory(rcpt_to=b"550 5.1.1 No such user\\r\\n")
    """
    servers: list[FakeSMTPServer] = []

    async def factory(**replies) -> FakeSMTPServer:
        server = FakeSMTPServer(server_ssl_context, replies)
        await server.start()
        servers.append(server)
        return server

    yield factory

    for server in servers:
        await server.stop()


@pytest.fixture
async def smtp_server(smtp_server_factory):
    """A fake server that accepts everything."""
    return await smtp_server_factory()


@pytest.fixture
def make_config():
    """Build a MailerConfig pointing at a fake server."""
    def factory(server: FakeSMTPServer | None = None, **overrides) -> MailerConfig:
        values = {
            "host": server.host if server else "127.0.0.1",
            "port": server.port if server else 465,
            "username": "sender@example.com",
            "password": "s3cret-app-password",
            "timeout": 5.0,
        }
        values.update(overrides)
        return MailerConfig(**values)
    return factory


@pytest.fixture
def sample_html_body():
    """Sample HTML notification body."""
    return """<html>
  <body style="font-family: Arial, sans-serif;">
    <h2>New Task Assigned</h2>
    <p>Hi Test User,</p>
    <p>You have been assigned a new task in <strong>Website Redesign</strong>.</p>
  </body>
</html>
"""
