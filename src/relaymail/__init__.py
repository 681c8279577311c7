# =============================================================================
# Relaymail: Minimal Implicit-TLS SMTP Mailer
# =============================================================================
#
# Relaymail sends single HTML emails (task and project notifications) through
# an SMTP relay, speaking the protocol directly over a TLS stream.
#
# Features:
#   - Implicit TLS (SMTPS, port 465) with certificate verification
#   - AUTH LOGIN authentication
#   - Strict reply-code checking at every step of the dialogue
#   - Header injection protection and dot-stuffing
#   - Per-step timeouts, guaranteed connection cleanup
#   - Best-effort notification emails that never break the caller
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "relaymail"

# Main entry point - this is what gets called by the 'relaymail' command
from relaymail.app import main

__all__ = ["main", "__version__", "__app_name__"]
