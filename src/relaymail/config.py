# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving, and resolving Relaymail configuration.
#
# Sources, lowest to highest precedence:
#   1. Built-in defaults (port 465, 30s timeout)
#   2. $XDG_CONFIG_HOME/relaymail/config.toml  (default: ~/.config/relaymail/)
#   3. Environment: SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD,
#      SMTP_TIMEOUT
#
# Passwords are never written to config.toml. They come from SMTP_PASSWORD,
# or failing that from the system keyring (service "relaymail:<host>").
# =============================================================================

import logging
import os
import tomllib  # Built into Python 3.11+
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import keyring
import tomli_w  # For writing TOML (tomllib is read-only)
from keyring.errors import KeyringError

from relaymail.core import DEFAULT_PORT, DEFAULT_TIMEOUT, MailerConfig

logger = logging.getLogger(__name__)


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths
APP_NAME = "relaymail"

# Environment variable names
ENV_HOST = "SMTP_HOST"
ENV_PORT = "SMTP_PORT"
ENV_USER = "SMTP_USER"
ENV_PASSWORD = "SMTP_PASSWORD"
ENV_TIMEOUT = "SMTP_TIMEOUT"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for Relaymail.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/relaymail/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


# =============================================================================
# Configuration Data Structures
# =============================================================================

@dataclass
class SMTPSettings:
    """
    Relay settings stored in the config file.

    Attributes:
        host: SMTP relay hostname.
        port: Implicit-TLS port (465).
        username: Login name, also used as the sender address.
        timeout: Seconds allowed for each network step.
        ehlo_name: Name announced in EHLO (empty = relay host).
    """
    host: str = ""
    port: int = DEFAULT_PORT
    username: str = ""
    timeout: float = DEFAULT_TIMEOUT
    ehlo_name: str = ""


@dataclass
class LoggingConfig:
    """
    Configuration for log output.

    Attributes:
        level: Root log level name ("DEBUG", "INFO", "WARNING", ...).
    """
    level: str = "INFO"


@dataclass
class Config:
    """
    Main configuration container for Relaymail.

    Usage:
        >>> config = Config.load()
        >>> mailer_config = config.mailer_config()
        >>> mailer_config.host
        'smtp.example.com'
    """
    smtp: SMTPSettings = field(default_factory=SMTPSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # -------------------------------------------------------------------------
    # File Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from the config file.

        If the config file doesn't exist, returns default configuration.

        Args:
            path: Config file to read. Defaults to the XDG location.

        Returns:
            Loaded Config object.

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = path or cls.config_file_path()

        if not config_path.exists():
            logger.debug(f"No config file at {config_path}, using defaults")
            return cls()

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e

        return cls._from_dict(data)

    def save(self, path: Path | None = None) -> Path:
        """
        Save configuration to the config file.

        Creates the config directory if it doesn't exist.

        Returns:
            The path written.
        """
        config_path = path or self.config_file_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)

        return config_path

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create a Config object from a dictionary (parsed TOML).
        """
        config = cls()

        smtp = data.get("smtp", {})
        if "password" in smtp:
            logger.warning("Ignoring 'password' in config file; use SMTP_PASSWORD or the keyring")
        try:
            config.smtp = SMTPSettings(
                host=str(smtp.get("host", "")),
                port=int(smtp.get("port", DEFAULT_PORT)),
                username=str(smtp.get("username", "")),
                timeout=float(smtp.get("timeout", DEFAULT_TIMEOUT)),
                ehlo_name=str(smtp.get("ehlo_name", "")),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid [smtp] settings: {e}") from e

        log = data.get("logging", {})
        config.logging = LoggingConfig(
            level=str(log.get("level", "INFO")).upper(),
        )

        return config

    def _to_dict(self) -> dict[str, Any]:
        """
        Convert Config to a dictionary for TOML serialization.
        """
        return {
            "smtp": {
                "host": self.smtp.host,
                "port": self.smtp.port,
                "username": self.smtp.username,
                "timeout": self.smtp.timeout,
                "ehlo_name": self.smtp.ehlo_name,
            },
            "logging": {
                "level": self.logging.level,
            },
        }

    # -------------------------------------------------------------------------
    # Resolving Mailer Settings
    # -------------------------------------------------------------------------

    def mailer_config(self, environ: Mapping[str, str] | None = None) -> MailerConfig:
        """
        Build the MailerConfig for a send.

        Environment variables override the config file. The password comes
        from SMTP_PASSWORD, or from the keyring if that's unset.

        Args:
            environ: Environment to read. Defaults to os.environ.

        Returns:
            Settings for the mailer. May be incomplete; the mailer reports
            missing fields itself.

        Raises:
            ConfigError: If SMTP_PORT or SMTP_TIMEOUT isn't a number.
        """
        env = os.environ if environ is None else environ

        host = env.get(ENV_HOST) or self.smtp.host
        username = env.get(ENV_USER) or self.smtp.username

        try:
            port = int(env[ENV_PORT]) if env.get(ENV_PORT) else self.smtp.port
            timeout = float(env[ENV_TIMEOUT]) if env.get(ENV_TIMEOUT) else self.smtp.timeout
        except ValueError as e:
            raise ConfigError(f"Invalid SMTP setting in environment: {e}") from e

        password = env.get(ENV_PASSWORD) or ""
        if not password and host and username:
            password = lookup_password(host, username)

        return MailerConfig(
            host=host,
            port=port,
            username=username,
            password=password,
            timeout=timeout,
            ehlo_name=self.smtp.ehlo_name,
        )


# =============================================================================
# Keyring
# =============================================================================

def keyring_service(host: str) -> str:
    """Keyring service name for a relay host."""
    return MailerConfig(host=host).keyring_service


def lookup_password(host: str, username: str) -> str:
    """
    Fetch the relay password from the system keyring.

    Returns:
        The password, or "" if none is stored or no keyring is available.
    """
    try:
        password = keyring.get_password(keyring_service(host), username)
    except KeyringError as e:
        logger.debug(f"Keyring unavailable: {e}")
        return ""
    return password or ""


def store_password(host: str, username: str, password: str) -> None:
    """
    Save the relay password in the system keyring.

    Raises:
        ConfigError: If no usable keyring backend is available.
    """
    try:
        keyring.set_password(keyring_service(host), username, password)
    except KeyringError as e:
        raise ConfigError(f"Could not store password in keyring: {e}") from e


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """
    Print config paths for debugging.
    Useful for users wondering where their config is stored.
    """
    print(f"Config:       {get_xdg_config_home()}")
    print(f"Config file:  {Config.config_file_path()}")
