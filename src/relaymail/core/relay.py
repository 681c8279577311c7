# =============================================================================
# Relay Configuration Model
# =============================================================================
# Represents the connection details for the outbound mail relay. This is the
# only thing the mailer needs to know about the outside world.
#
# IMPORTANT: The password is held here only for the duration of a send. It is
# never written to config files and never shown in repr() or log output.
# =============================================================================

from dataclasses import dataclass, field

# Implicit TLS ("SMTPS") submission port
DEFAULT_PORT = 465

# Seconds allowed for each network step (connect, handshake, read, write)
DEFAULT_TIMEOUT = 30.0

# Valid TCP port range
MIN_PORT = 1
MAX_PORT = 65535


@dataclass(frozen=True)
class MailerConfig:
    """
    Connection and credential settings for one SMTP relay.

    Attributes:
        host: Hostname of the SMTP relay (e.g., "smtp.example.com").
              Also used as the TLS verification name.
        port: Port for the implicit-TLS connection. Standard port:
              - 465 for SMTP over TLS (the only mode supported)
        username: Login name for AUTH LOGIN. Also used as the envelope
                  sender (MAIL FROM) and the From header.
        password: Password for AUTH LOGIN.
        timeout: Seconds allowed for each network step.
        ehlo_name: Name announced in EHLO. Defaults to the relay host.

    Example:
        >>> config = MailerConfig(
        ...     host="smtp.example.com",
        ...     username="notifications@example.com",
        ...     password="app-password",
        ... )
    """

    host: str = ""
    port: int = DEFAULT_PORT
    username: str = ""
    password: str = field(default="", repr=False)
    timeout: float = DEFAULT_TIMEOUT
    ehlo_name: str = ""

    def missing_fields(self) -> list[str]:
        """
        Return the names of required settings that are empty or out of range.

        An empty list means the config is complete enough to attempt a send.
        """
        missing = []
        if not self.host.strip():
            missing.append("host")
        if not MIN_PORT <= self.port <= MAX_PORT:
            missing.append("port")
        if not self.username.strip():
            missing.append("username")
        if not self.password:
            missing.append("password")
        return missing

    @property
    def is_complete(self) -> bool:
        """Check if all required settings are present."""
        return not self.missing_fields()

    @property
    def helo_name(self) -> str:
        """The name sent with EHLO."""
        return self.ehlo_name or self.host

    @property
    def keyring_service(self) -> str:
        """
        Returns the service name used for keyring password storage.

        Passwords can be managed via the keyring CLI if needed:
            keyring set relaymail:smtp.example.com notifications@example.com
        """
        return f"relaymail:{self.host}"

    def __str__(self) -> str:
        """Human-readable representation showing user and relay."""
        return f"{self.username}@{self.host}:{self.port}"
