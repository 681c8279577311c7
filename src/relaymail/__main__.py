# =============================================================================
# Relaymail Entry Point for `python -m relaymail`
# =============================================================================
# This module allows Relaymail to be run as a Python module:
#
#   python -m relaymail send --to user@example.com --subject Hi --body "<p>Hi</p>"
#
# This is equivalent to running the 'relaymail' command after installation.
# =============================================================================

import sys

from relaymail.app import main

if __name__ == "__main__":
    sys.exit(main())
